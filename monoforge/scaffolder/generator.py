"""Main scaffolding orchestrator.

Takes a ``WorkspaceSpec`` and generates a complete multi-package workspace:
one directory per package (manifest, TypeScript config, source stubs) plus
the root manifest and task graph.

A run moves through ``pending -> validated -> ordered -> rendered ->
written -> done``.  Every artifact is rendered in memory before the first
byte is written, so a validation, ordering or template failure leaves the
target directory untouched.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from monoforge.errors import ScaffoldError, WriteError
from monoforge.models import BuildPlan, GeneratedArtifact, RunState, WorkspaceSpec
from monoforge.utils import write_file

from .manifest import RootManifestEmitter
from .planner import build_plan
from .renderers import PackageRenderer
from .templates import TemplateRenderer
from .validator import validate


class WorkspaceGenerator:
    """Runs one scaffolding pass for a ``WorkspaceSpec``.

    Attributes:
        state: Current ``RunState``.
        history: Every state the run has been in, in order.
        plan: The computed ``BuildPlan`` (``None`` until ordered).
        artifacts: Rendered artifacts (empty until rendered).
        committed: Artifact paths written to disk so far.
        error: The error that failed the run, if any.
    """

    def __init__(
        self, spec: WorkspaceSpec, renderer: TemplateRenderer | None = None
    ) -> None:
        self.spec = spec
        self.renderer = renderer or TemplateRenderer()
        self.package_renderer = PackageRenderer(self.renderer)
        self.root_emitter = RootManifestEmitter(self.renderer)
        self.state = RunState.PENDING
        self.history: list[RunState] = [RunState.PENDING]
        self.plan: BuildPlan | None = None
        self.artifacts: list[GeneratedArtifact] = []
        self.committed: list[str] = []
        self.error: ScaffoldError | None = None

    # -- Public API --------------------------------------------------------

    def render(self) -> list[GeneratedArtifact]:
        """Validate, order and render the workspace without writing anything.

        Returns:
            Package artifacts in build-plan order, followed by root artifacts.
        """
        try:
            validate(self.spec)
            self._transition(RunState.VALIDATED)

            self.plan = build_plan(self.spec)
            self._transition(RunState.ORDERED)

            artifacts: list[GeneratedArtifact] = []
            for package in self.plan:
                artifacts.extend(self.package_renderer.render(package, self.plan, self.spec))
            artifacts.extend(self.root_emitter.emit(self.plan, self.spec))
        except ScaffoldError as exc:
            self._fail(exc)
            raise

        self.artifacts = artifacts
        self._transition(RunState.RENDERED)
        return artifacts

    async def generate(
        self, target_dir: str | Path, *, overwrite: bool = False
    ) -> list[GeneratedArtifact]:
        """Render the workspace and write it into *target_dir*.

        Args:
            target_dir: Workspace root.  Created if missing.
            overwrite: Replace existing files whose content differs.  By
                default such files are a collision and nothing is written;
                files with identical content are always accepted.

        Returns:
            The written artifacts.

        Raises:
            ValidationError: The specification is malformed.
            CycleError: The dependency graph contains a cycle.
            UnknownTemplateError: A package names an unsupported template.
            WriteError: A collision was detected (nothing written) or a
                write failed part-way (see ``committed``/``pending``).
        """
        artifacts = self.render()
        root = Path(target_dir)

        try:
            await asyncio.to_thread(_check_collisions, root, artifacts, overwrite)
            await self._write_all(root, artifacts)
        except WriteError as exc:
            self._fail(exc)
            raise

        self._transition(RunState.WRITTEN)
        self._transition(RunState.DONE)
        return artifacts

    # -- Internals ---------------------------------------------------------

    async def _write_all(self, root: Path, artifacts: list[GeneratedArtifact]) -> None:
        paths = [a.path for a in artifacts]
        for index, artifact in enumerate(artifacts):
            try:
                await asyncio.to_thread(
                    write_file, root / artifact.path, artifact.content, artifact.executable
                )
            except OSError as exc:
                raise WriteError(
                    f"Failed to write {artifact.path}: {exc}",
                    path=artifact.path,
                    committed=list(self.committed),
                    pending=paths[index:],
                ) from exc
            self.committed.append(artifact.path)

    def _transition(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(self, exc: ScaffoldError) -> None:
        self.error = exc
        self._transition(RunState.FAILED)


# ---------------------------------------------------------------------------
# Collision detection
# ---------------------------------------------------------------------------

def _check_collisions(
    root: Path, artifacts: list[GeneratedArtifact], overwrite: bool
) -> None:
    """Reject artifact sets that cannot be written cleanly into *root*.

    Runs before any write, so a ``WriteError`` from here has nothing
    committed.
    """
    paths = [a.path for a in artifacts]

    def collision(message: str, path: str | None = None) -> WriteError:
        return WriteError(message, path=path, committed=[], pending=paths)

    if root.exists() and not root.is_dir():
        raise collision(f"Target {root} exists and is not a directory")

    seen: set[str] = set()
    directories: set[str] = set()
    for path in paths:
        pure = PurePosixPath(path)
        if pure.is_absolute() or ".." in pure.parts:
            raise collision(f"Artifact path escapes the workspace: {path}", path)
        if path in seen:
            raise collision(f"Artifact path claimed twice: {path}", path)
        seen.add(path)
        directories.update(str(parent) for parent in pure.parents if str(parent) != ".")

    clash = sorted(seen & directories)
    if clash:
        raise collision(f"Artifact path is both a file and a directory: {clash[0]}", clash[0])

    for artifact in artifacts:
        dest = root / artifact.path
        for parent in PurePosixPath(artifact.path).parents:
            if str(parent) == ".":
                continue
            existing = root / parent
            if existing.exists() and not existing.is_dir():
                raise collision(
                    f"{parent} exists as a file but {artifact.path} needs it as a directory",
                    artifact.path,
                )
        if dest.is_dir():
            raise collision(f"{artifact.path} exists as a directory", artifact.path)
        if dest.exists() and not overwrite:
            if dest.read_text(encoding="utf-8", errors="replace") != artifact.content:
                raise collision(
                    f"{artifact.path} already exists with different content", artifact.path
                )


# ---------------------------------------------------------------------------
# Module-level operations
# ---------------------------------------------------------------------------

def render_workspace(spec: WorkspaceSpec) -> list[GeneratedArtifact]:
    """Render every artifact for *spec* without touching the filesystem."""
    return WorkspaceGenerator(spec).render()


async def generate(
    spec: WorkspaceSpec, target_dir: str | Path, *, overwrite: bool = False
) -> list[GeneratedArtifact]:
    """Validate, plan, render and write *spec* into *target_dir*."""
    return await WorkspaceGenerator(spec).generate(target_dir, overwrite=overwrite)
