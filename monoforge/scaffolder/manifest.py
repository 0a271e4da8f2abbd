"""Root manifest emission.

Writes the files that sit at the workspace root: the orchestration manifest
(``monoforge.tasks.json``) with one task graph per declared task, the root
``package.json`` whose scripts run package tasks in build order, the root
TypeScript configs, and the README.

Task steps always appear in ``BuildPlan`` order, and each step lists the
steps it must wait for.  Steps with no path between them carry no ordering
constraint and are grouped into the same stage.
"""

from __future__ import annotations

from typing import Any

from monoforge.models import (
    BuildPlan,
    GeneratedArtifact,
    PackageKind,
    PackageManager,
    ReadinessCheck,
    RootManifest,
    TaskGraph,
    TaskInvocation,
    TaskStep,
    WorkspaceSpec,
)
from monoforge.utils import dump_json, dump_yaml

from .catalog import TYPESCRIPT_VERSION, get_template
from .renderers import BASE_COMPILER_OPTIONS
from .templates import TemplateRenderer

TASKS_MANIFEST = "monoforge.tasks.json"

READINESS_TIMEOUT = 60.0
READINESS_INTERVAL = 2.0


# ---------------------------------------------------------------------------
# Task graph
# ---------------------------------------------------------------------------


def build_task_graph(
    task: str,
    invocations: list[TaskInvocation],
    plan: BuildPlan,
    spec: WorkspaceSpec,
) -> TaskGraph:
    """Order *invocations* by the build plan and wire their dependencies.

    A step waits for every participating package it depends on, directly or
    through packages that are not part of the task.  Redundant edges (implied
    by another dependency) are dropped.
    """
    participants = {inv.package: inv for inv in invocations}
    ordered = [name for name in plan.names if name in participants]
    pm = spec.package_manager.value

    waits: dict[str, list[str]] = {}
    for name in ordered:
        reachable = plan.transitive_dependencies(name) & participants.keys()
        implied = set()
        for dep in reachable:
            implied |= plan.transitive_dependencies(dep)
        waits[name] = sorted(reachable - implied, key=plan.index)

    steps: list[TaskStep] = []
    for name in ordered:
        invocation = participants[name]
        package = plan.get_package(name)
        script = invocation.script or task
        readiness = None
        if invocation.persistent and package.kind == PackageKind.SERVICE:
            readiness = ReadinessCheck(
                url=f"http://localhost:{plan.ports[name]}/health",
                timeout=READINESS_TIMEOUT,
                interval=READINESS_INTERVAL,
            )
        steps.append(
            TaskStep(
                package=name,
                directory=spec.package_directory(name),
                script=script,
                command=f"{pm} run {script}",
                depends_on=waits[name],
                persistent=invocation.persistent,
                readiness=readiness,
            )
        )

    return TaskGraph(steps=steps, stages=_stages(ordered, waits))


def _stages(ordered: list[str], waits: dict[str, list[str]]) -> list[list[str]]:
    depth: dict[str, int] = {}
    for name in ordered:
        depth[name] = 1 + max((depth[d] for d in waits[name]), default=-1)
    stages: list[list[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
    for name in ordered:
        stages[depth[name]].append(name)
    return [sorted(stage) for stage in stages]


def build_root_manifest(plan: BuildPlan, spec: WorkspaceSpec) -> RootManifest:
    """Build the orchestration manifest for every task of *spec*."""
    return RootManifest(
        workspace=spec.root_name,
        package_manager=spec.package_manager,
        build_order=plan.names,
        tasks={
            task: build_task_graph(task, invocations, plan, spec)
            for task, invocations in spec.effective_tasks().items()
        },
    )


# ---------------------------------------------------------------------------
# Root files
# ---------------------------------------------------------------------------


def root_script(spec: WorkspaceSpec, task: str, graph: TaskGraph) -> str:
    """Root ``package.json`` script for *task*.

    Short-lived tasks chain the package scripts in build order; tasks with
    long-running steps need parallel supervision and go through
    ``monoforge run``.
    """
    if any(step.persistent for step in graph.steps):
        return f"monoforge run {task}"
    return " && ".join(
        _workspace_command(spec.package_manager, spec.npm_name(step.package), step.script)
        for step in graph.steps
    )


def _workspace_command(package_manager: PackageManager, npm_name: str, script: str) -> str:
    if package_manager == PackageManager.PNPM:
        return f"pnpm --filter {npm_name} run {script}"
    if package_manager == PackageManager.YARN:
        return f"yarn workspace {npm_name} run {script}"
    return f"npm run {script} --workspace={npm_name}"


class RootManifestEmitter:
    """Renders the workspace-root artifacts."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    def emit(self, plan: BuildPlan, spec: WorkspaceSpec) -> list[GeneratedArtifact]:
        manifest = build_root_manifest(plan, spec)
        files: dict[str, str] = {
            TASKS_MANIFEST: manifest.to_json(),
            "package.json": dump_json(self._package_json(spec, manifest)),
            "tsconfig.base.json": dump_json({"compilerOptions": BASE_COMPILER_OPTIONS}),
            "tsconfig.json": dump_json(self._tsconfig(plan, spec)),
            ".gitignore": self.renderer.render("_root/gitignore.j2", {}),
            "README.md": self.renderer.render(
                "_root/README.md.j2", self._readme_context(plan, spec, manifest)
            ),
        }
        if spec.package_manager == PackageManager.PNPM:
            files["pnpm-workspace.yaml"] = dump_yaml({"packages": [f"{spec.packages_dir}/*"]})

        return [GeneratedArtifact(path=rel, content=files[rel]) for rel in sorted(files)]

    def _package_json(self, spec: WorkspaceSpec, manifest: RootManifest) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": spec.root_name,
            "version": "0.0.0",
            "private": True,
        }
        if spec.description:
            data["description"] = spec.description
        if spec.package_manager != PackageManager.PNPM:
            data["workspaces"] = [f"{spec.packages_dir}/*"]
        data["scripts"] = {
            task: root_script(spec, task, graph) for task, graph in manifest.tasks.items()
        }
        data["devDependencies"] = {"typescript": TYPESCRIPT_VERSION}
        return data

    def _tsconfig(self, plan: BuildPlan, spec: WorkspaceSpec) -> dict[str, Any]:
        return {
            "files": [],
            "references": [
                {"path": f"./{spec.package_directory(p.name)}"}
                for p in plan
                if get_template(p).composite
            ],
        }

    def _readme_context(
        self, plan: BuildPlan, spec: WorkspaceSpec, manifest: RootManifest
    ) -> dict[str, Any]:
        return {
            "workspace_name": spec.root_name,
            "description": spec.description,
            "package_manager": spec.package_manager.value,
            "packages": [
                {
                    "npm_name": spec.npm_name(p.name),
                    "kind": p.kind.value,
                    "template": p.template,
                    "port": plan.ports.get(p.name),
                    "depends_on": p.depends_on,
                }
                for p in plan
            ],
            "stages": [list(stage) for stage in plan.stages],
            "tasks": [
                {"name": task, "persistent": any(s.persistent for s in graph.steps)}
                for task, graph in manifest.tasks.items()
            ],
        }


def emit_root(
    plan: BuildPlan,
    spec: WorkspaceSpec,
    renderer: TemplateRenderer | None = None,
) -> list[GeneratedArtifact]:
    """Render the workspace-root artifacts for *plan*."""
    return RootManifestEmitter(renderer).emit(plan, spec)
