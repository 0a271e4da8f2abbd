"""Per-package rendering.

Turns one ``PackageSpec`` (plus the ``BuildPlan`` it belongs to) into the
complete set of files for that package: the ``package.json`` manifest, a
``tsconfig.json`` with project references to its dependencies, any static
config files the template needs, and the template's source stubs.

Rendering is pure.  The same package and plan always produce the same
artifacts, and nothing here reads the environment or writes to disk.
"""

from __future__ import annotations

import posixpath
from typing import Any

from monoforge.errors import UnknownTemplateError
from monoforge.models import (
    BuildPlan,
    GeneratedArtifact,
    PackageKind,
    PackageManager,
    PackageSpec,
    WorkspaceSpec,
)
from monoforge.utils import dump_json

from .catalog import TemplateDefinition, get_template
from .templates import TemplateRenderer


PACKAGE_VERSION = "0.1.0"

# Compiler options every package inherits from ``tsconfig.base.json``.
BASE_COMPILER_OPTIONS: dict[str, Any] = {
    "target": "ES2022",
    "strict": True,
    "esModuleInterop": True,
    "skipLibCheck": True,
    "forceConsistentCasingInFileNames": True,
    "resolveJsonModule": True,
    "sourceMap": True,
}


def workspace_constraint(package_manager: PackageManager) -> str:
    """Version constraint that resolves a dependency inside the workspace.

    npm links workspace members for any range, so ``*`` is used; pnpm and
    Yarn (berry) understand the explicit ``workspace:`` protocol.
    """
    if package_manager == PackageManager.NPM:
        return "*"
    return "workspace:*"


class PackageRenderer:
    """Renders every artifact for a single workspace package."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    # -- Public API --------------------------------------------------------

    def render(
        self, package: PackageSpec, plan: BuildPlan, spec: WorkspaceSpec
    ) -> list[GeneratedArtifact]:
        """Render *package* into artifacts with workspace-relative paths.

        Raises:
            UnknownTemplateError: The package's template is not in the
                catalog, does not serve its kind, or has no source stubs.
        """
        definition = get_template(package)
        if not self.renderer.has_templates(definition.id):
            raise UnknownTemplateError(
                package.name,
                definition.id,
                package.kind.value,
                f"no template files found for '{definition.id}'",
            )

        context = self.build_context(package, plan, spec, definition)
        directory = spec.package_directory(package.name)

        files: dict[str, str] = {
            "package.json": dump_json(self._manifest(package, plan, spec, definition)),
            "tsconfig.json": dump_json(self._tsconfig(package, plan, spec, definition)),
        }
        for filename, data in sorted(definition.config_files.items()):
            files[filename] = dump_json(data)
        files.update(self.renderer.render_tree(definition.id, context))
        files["README.md"] = self.renderer.render("_package/README.md.j2", context)

        return [
            GeneratedArtifact(
                path=f"{directory}/{rel}",
                content=files[rel],
                package=package.name,
            )
            for rel in sorted(files)
        ]

    # -- Context building --------------------------------------------------

    def build_context(
        self,
        package: PackageSpec,
        plan: BuildPlan,
        spec: WorkspaceSpec,
        definition: TemplateDefinition | None = None,
    ) -> dict[str, Any]:
        """Build the Jinja2 template context for *package*."""
        definition = definition or get_template(package)
        directory = spec.package_directory(package.name)
        dependencies = [
            {
                "name": dep.name,
                "npm_name": spec.npm_name(dep.name),
                "kind": dep.kind.value,
                "template": dep.template,
                "port": plan.ports.get(dep.name),
                "directory": posixpath.relpath(spec.package_directory(dep.name), directory),
            }
            for dep in plan.dependencies(package.name)
        ]
        return {
            "workspace_name": spec.root_name,
            "package_name": package.name,
            "npm_name": spec.npm_name(package.name),
            "description": package.description or f"{definition.label} for {spec.root_name}.",
            "kind": package.kind.value,
            "template": definition.id,
            "port": plan.ports.get(package.name),
            "scripts": definition.scripts,
            "package_manager": spec.package_manager.value,
            "dependencies": dependencies,
            "shared_deps": [
                d for d in dependencies if d["kind"] == PackageKind.SHARED_LIBRARY.value
            ],
            "service_deps": [d for d in dependencies if d["kind"] == PackageKind.SERVICE.value],
        }

    # -- Manifest / config -------------------------------------------------

    def _manifest(
        self,
        package: PackageSpec,
        plan: BuildPlan,
        spec: WorkspaceSpec,
        definition: TemplateDefinition,
    ) -> dict[str, Any]:
        constraint = workspace_constraint(spec.package_manager)
        internal = {spec.npm_name(dep.name): constraint for dep in plan.dependencies(package.name)}

        manifest: dict[str, Any] = {
            "name": spec.npm_name(package.name),
            "version": PACKAGE_VERSION,
            "private": True,
        }
        if package.description:
            manifest["description"] = package.description
        manifest.update(definition.manifest_fields)
        manifest["scripts"] = dict(definition.scripts)
        dependencies = {**internal, **dict(sorted(definition.dependencies.items()))}
        if dependencies:
            manifest["dependencies"] = dependencies
        if definition.dev_dependencies:
            manifest["devDependencies"] = dict(sorted(definition.dev_dependencies.items()))
        return manifest

    def _tsconfig(
        self,
        package: PackageSpec,
        plan: BuildPlan,
        spec: WorkspaceSpec,
        definition: TemplateDefinition,
    ) -> dict[str, Any]:
        directory = spec.package_directory(package.name)
        base = posixpath.relpath("tsconfig.base.json", directory)
        config: dict[str, Any] = {
            "extends": base,
            "compilerOptions": dict(definition.compiler_options),
            "include": list(definition.tsconfig_include),
        }
        references = [
            {"path": posixpath.relpath(spec.package_directory(dep.name), directory)}
            for dep in plan.dependencies(package.name)
            if get_template(dep).composite
        ]
        if references:
            config["references"] = references
        return config


def render_package(
    package: PackageSpec,
    plan: BuildPlan,
    spec: WorkspaceSpec,
    renderer: TemplateRenderer | None = None,
) -> list[GeneratedArtifact]:
    """Render *package* with a fresh (or the given) template renderer."""
    return PackageRenderer(renderer).render(package, plan, spec)
