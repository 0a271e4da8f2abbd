"""monoforge scaffolder -- generates complete multi-package workspaces.

This package takes a ``WorkspaceSpec`` as input, validates it, orders its
packages so dependencies always come first, renders every package from its
template, and writes the workspace together with a root task graph.

Quick usage::

    from monoforge.models import PackageSpec, WorkspaceSpec
    from monoforge.scaffolder import generate, plan

    spec = WorkspaceSpec(
        root_name="acme",
        packages=[
            PackageSpec(name="shared", kind="shared-library"),
            PackageSpec(name="server", kind="service", depends_on=["shared"]),
            PackageSpec(name="client", kind="frontend", depends_on=["shared", "server"]),
        ],
    )
    print(plan(spec).names)          # ['shared', 'server', 'client']
    artifacts = await generate(spec, "/tmp/acme")
"""

from monoforge.scaffolder.catalog import CATALOG, TemplateDefinition, get_template
from monoforge.scaffolder.generator import WorkspaceGenerator, generate, render_workspace
from monoforge.scaffolder.manifest import build_root_manifest, emit_root
from monoforge.scaffolder.planner import order_packages, plan
from monoforge.scaffolder.renderers import PackageRenderer, render_package
from monoforge.scaffolder.templates import TemplateRenderer
from monoforge.scaffolder.validator import find_cycle, validate

__all__ = [
    "CATALOG",
    "PackageRenderer",
    "TemplateDefinition",
    "TemplateRenderer",
    "WorkspaceGenerator",
    "build_root_manifest",
    "emit_root",
    "find_cycle",
    "generate",
    "get_template",
    "order_packages",
    "plan",
    "render_package",
    "render_workspace",
    "validate",
]
