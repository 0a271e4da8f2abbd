"""Catalog of package templates.

Each ``TemplateDefinition`` describes one supported stack: the package kind
it serves, the scripts and registry dependencies of its manifest, its
TypeScript compiler options, and any static config files.  Source stubs for
a template live in ``templates/<template id>/``.  Supporting a new stack means
adding an entry here plus its template directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from monoforge.errors import UnknownTemplateError
from monoforge.models import PackageKind, PackageSpec

TYPESCRIPT_VERSION = "^5.6.3"
NODE_TYPES_VERSION = "^22.9.0"


@dataclass(frozen=True)
class TemplateDefinition:
    """One supported package template."""

    id: str
    kind: PackageKind
    label: str
    scripts: dict[str, str] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    manifest_fields: dict[str, Any] = field(default_factory=dict)
    compiler_options: dict[str, Any] = field(default_factory=dict)
    tsconfig_include: tuple[str, ...] = ("src",)
    config_files: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def composite(self) -> bool:
        """Whether other packages can reference this one as a TS project."""
        return bool(self.compiler_options.get("composite"))


_NODE_COMPILER_OPTIONS: dict[str, Any] = {
    "module": "CommonJS",
    "moduleResolution": "Node",
    "outDir": "dist",
    "rootDir": "src",
    "types": ["node"],
}


CATALOG: dict[str, TemplateDefinition] = {
    "ts-library": TemplateDefinition(
        id="ts-library",
        kind=PackageKind.SHARED_LIBRARY,
        label="Shared types library",
        scripts={
            "build": "tsc -b",
            "dev": "tsc -b --watch --preserveWatchOutput",
            "typecheck": "tsc -b --noEmit",
            "clean": "tsc -b --clean",
        },
        dev_dependencies={"typescript": TYPESCRIPT_VERSION},
        manifest_fields={
            "main": "dist/index.js",
            "types": "dist/index.d.ts",
            "files": ["dist"],
        },
        compiler_options={
            "composite": True,
            "declaration": True,
            "declarationMap": True,
            "module": "CommonJS",
            "moduleResolution": "Node",
            "outDir": "dist",
            "rootDir": "src",
        },
    ),
    "express": TemplateDefinition(
        id="express",
        kind=PackageKind.SERVICE,
        label="Express API service",
        scripts={
            "build": "tsc -b",
            "dev": "tsx watch src/index.ts",
            "start": "node dist/index.js",
            "typecheck": "tsc -b --noEmit",
            "clean": "tsc -b --clean",
        },
        dependencies={"express": "^4.21.1", "cors": "^2.8.5"},
        dev_dependencies={
            "@types/cors": "^2.8.17",
            "@types/express": "^4.17.21",
            "@types/node": NODE_TYPES_VERSION,
            "tsx": "^4.19.2",
            "typescript": TYPESCRIPT_VERSION,
        },
        manifest_fields={"main": "dist/index.js"},
        compiler_options={"composite": True, **_NODE_COMPILER_OPTIONS},
    ),
    "nestjs": TemplateDefinition(
        id="nestjs",
        kind=PackageKind.SERVICE,
        label="NestJS API service",
        scripts={
            "build": "nest build",
            "dev": "nest start --watch",
            "start": "node dist/main.js",
            "typecheck": "tsc -b --noEmit",
            "clean": "tsc -b --clean",
        },
        dependencies={
            "@nestjs/common": "^10.4.7",
            "@nestjs/core": "^10.4.7",
            "@nestjs/platform-express": "^10.4.7",
            "reflect-metadata": "^0.2.2",
            "rxjs": "^7.8.1",
        },
        dev_dependencies={
            "@nestjs/cli": "^10.4.7",
            "@types/node": NODE_TYPES_VERSION,
            "typescript": TYPESCRIPT_VERSION,
        },
        manifest_fields={"main": "dist/main.js"},
        compiler_options={
            **_NODE_COMPILER_OPTIONS,
            "emitDecoratorMetadata": True,
            "experimentalDecorators": True,
        },
        config_files={
            "nest-cli.json": {
                "$schema": "https://json.schemastore.org/nest-cli",
                "collection": "@nestjs/schematics",
                "sourceRoot": "src",
                "compilerOptions": {"deleteOutDir": True},
            },
        },
    ),
    "react-vite": TemplateDefinition(
        id="react-vite",
        kind=PackageKind.FRONTEND,
        label="React + Vite frontend",
        scripts={
            "build": "tsc -b && vite build",
            "dev": "vite",
            "preview": "vite preview",
            "typecheck": "tsc -b --noEmit",
        },
        dependencies={"react": "^18.3.1", "react-dom": "^18.3.1"},
        dev_dependencies={
            "@types/react": "^18.3.12",
            "@types/react-dom": "^18.3.1",
            "@vitejs/plugin-react": "^4.3.3",
            "typescript": TYPESCRIPT_VERSION,
            "vite": "^5.4.11",
        },
        manifest_fields={"type": "module"},
        compiler_options={
            "module": "ESNext",
            "moduleResolution": "Bundler",
            "jsx": "react-jsx",
            "lib": ["ES2022", "DOM", "DOM.Iterable"],
            "noEmit": True,
            "types": ["vite/client"],
        },
        tsconfig_include=("src", "vite.config.ts"),
    ),
}


def get_template(package: PackageSpec) -> TemplateDefinition:
    """Return the catalog entry for *package*.

    Raises:
        UnknownTemplateError: The template is not in the catalog, or it
            serves a different package kind.
    """
    definition = CATALOG.get(package.template)
    if definition is None:
        known = ", ".join(sorted(CATALOG))
        raise UnknownTemplateError(
            package.name,
            package.template,
            package.kind.value,
            f"unknown template '{package.template}' (known: {known})",
        )
    if definition.kind != package.kind:
        raise UnknownTemplateError(
            package.name,
            package.template,
            package.kind.value,
            f"template '{package.template}' builds {definition.kind.value} packages; "
            f"{package.kind.value} packages use: {', '.join(templates_for_kind(package.kind))}",
        )
    return definition


def templates_for_kind(kind: PackageKind) -> list[str]:
    """Template ids that can build packages of *kind*, sorted."""
    return sorted(tid for tid, d in CATALOG.items() if d.kind == kind)
