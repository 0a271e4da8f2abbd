"""Pydantic v2 models for workspace specifications and generated output.

Defines the declarative input (``PackageSpec``, ``TaskInvocation``,
``WorkspaceSpec``), the derived ``BuildPlan``, the rendered
``GeneratedArtifact``, and the root orchestration manifest consumed by the
task runner.  Field names accept both ``snake_case`` and the ``camelCase``
spelling used in spec files (``dependsOn``, ``taskDefinitions``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


NAME_PATTERN = r"^[a-z0-9][a-z0-9._-]*$"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class PackageKind(str, Enum):
    """Role of a workspace member."""
    SERVICE = "service"
    FRONTEND = "frontend"
    SHARED_LIBRARY = "shared-library"


class PackageManager(str, Enum):
    """Package manager driving the generated workspace."""
    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"


class RunState(str, Enum):
    """Lifecycle of a single scaffolding run."""
    PENDING = "pending"
    VALIDATED = "validated"
    ORDERED = "ordered"
    RENDERED = "rendered"
    WRITTEN = "written"
    DONE = "done"
    FAILED = "failed"


# Template used when a package does not name one.
DEFAULT_TEMPLATES: dict[str, str] = {
    PackageKind.SERVICE.value: "express",
    PackageKind.FRONTEND.value: "react-vite",
    PackageKind.SHARED_LIBRARY.value: "ts-library",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Specification input
# ---------------------------------------------------------------------------

class PackageSpec(_CamelModel):
    """One workspace member and the packages it depends on."""
    name: str = Field(..., pattern=NAME_PATTERN, description="Unique package name")
    kind: PackageKind = Field(..., description="service, frontend or shared-library")
    template: str = Field(default="", description="Template identifier from the catalog")
    depends_on: list[str] = Field(
        default_factory=list, description="Names of packages this one depends on"
    )
    description: str = Field(default="", description="Short package description")
    port: Optional[int] = Field(
        default=None, ge=1, le=65535, description="Listen port for services and frontends"
    )

    @model_validator(mode="before")
    @classmethod
    def _default_template(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("template"):
            kind = data.get("kind")
            kind_value = kind.value if isinstance(kind, PackageKind) else kind
            if kind_value in DEFAULT_TEMPLATES:
                data = {**data, "template": DEFAULT_TEMPLATES[kind_value]}
        return data

    @field_validator("depends_on")
    @classmethod
    def _as_sorted_set(cls, value: list[str]) -> list[str]:
        return sorted(set(value))

    @property
    def listens(self) -> bool:
        """Whether the package runs a server that needs a port."""
        return self.kind in (PackageKind.SERVICE, PackageKind.FRONTEND)


class TaskInvocation(_CamelModel):
    """A single package's part in a workspace task.

    A bare string is accepted as shorthand for ``{"package": <name>}``.
    """
    package: str = Field(..., description="Package name")
    script: Optional[str] = Field(
        default=None, description="Package script to run; defaults to the task name"
    )
    persistent: bool = Field(
        default=False, description="Long-running process (dev server, watcher)"
    )

    @model_validator(mode="before")
    @classmethod
    def _from_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"package": data}
        return data


class WorkspaceSpec(_CamelModel):
    """The root input: every package plus the workspace-level task graph."""
    root_name: str = Field(..., pattern=NAME_PATTERN, description="Workspace (root package) name")
    description: str = Field(default="", description="Workspace description")
    scope: Optional[str] = Field(
        default=None, description="npm scope for package names, without the '@'"
    )
    package_manager: PackageManager = Field(default=PackageManager.NPM)
    packages_dir: str = Field(
        default="packages", pattern=r"^[A-Za-z0-9._-]+$", description="Directory holding packages"
    )
    base_port: int = Field(default=23000, ge=1024, le=65000, description="First allocated port")
    packages: list[PackageSpec] = Field(default_factory=list)
    task_definitions: dict[str, list[TaskInvocation]] = Field(default_factory=dict)

    @field_validator("scope")
    @classmethod
    def _strip_at(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.lstrip("@")
        if not value:
            return None
        if not re.match(NAME_PATTERN, value):
            raise ValueError(f"invalid npm scope '{value}'")
        return value

    # -- Lookups -----------------------------------------------------------

    def package_names(self) -> list[str]:
        return [p.name for p in self.packages]

    def get_package(self, name: str) -> PackageSpec:
        for package in self.packages:
            if package.name == name:
                return package
        raise KeyError(name)

    def npm_name(self, name: str) -> str:
        """Return the published name of a package, scoped when configured."""
        return f"@{self.scope}/{name}" if self.scope else name

    def package_directory(self, name: str) -> str:
        """Workspace-relative POSIX directory of a package."""
        return f"{self.packages_dir}/{name}"

    def effective_tasks(self) -> dict[str, list[TaskInvocation]]:
        """Return the declared tasks, or ``build``/``dev`` over every package."""
        if self.task_definitions:
            return dict(self.task_definitions)
        return {
            "build": [TaskInvocation(package=p.name) for p in self.packages],
            "dev": [TaskInvocation(package=p.name, persistent=True) for p in self.packages],
        }


# ---------------------------------------------------------------------------
# Derived build plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BuildPlan:
    """Packages in dependency order.

    ``stages`` groups packages by depth: everything in one stage depends only
    on earlier stages, so a stage may run in parallel.  ``ports`` maps each
    listening package to its allocated port.
    """

    packages: tuple[PackageSpec, ...]
    stages: tuple[tuple[str, ...], ...]
    ports: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.packages)

    def __iter__(self) -> Iterator[PackageSpec]:
        return iter(self.packages)

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.packages]

    def index(self, name: str) -> int:
        return self.names.index(name)

    def get_package(self, name: str) -> PackageSpec:
        for package in self.packages:
            if package.name == name:
                return package
        raise KeyError(name)

    def depth(self, name: str) -> int:
        for depth, stage in enumerate(self.stages):
            if name in stage:
                return depth
        raise KeyError(name)

    def dependencies(self, name: str) -> list[PackageSpec]:
        """Direct dependencies of *name*, in plan order."""
        wanted = set(self.get_package(name).depends_on)
        return [p for p in self.packages if p.name in wanted]

    def transitive_dependencies(self, name: str) -> set[str]:
        """Every package *name* depends on, directly or indirectly."""
        seen: set[str] = set()
        stack = list(self.get_package(name).depends_on)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.get_package(current).depends_on)
        return seen


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------

class GeneratedArtifact(BaseModel):
    """One rendered file, relative to the workspace root."""
    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Workspace-relative POSIX path")
    content: str = Field(..., description="Full file content")
    package: Optional[str] = Field(default=None, description="Owning package; None for root files")
    executable: bool = Field(default=False)


# ---------------------------------------------------------------------------
# Root orchestration manifest (monoforge.tasks.json)
# ---------------------------------------------------------------------------

class ReadinessCheck(_CamelModel):
    """Liveness endpoint polled before dependents of a persistent step start."""
    url: str
    timeout: float = Field(default=60.0, gt=0)
    interval: float = Field(default=2.0, gt=0)


class TaskStep(_CamelModel):
    """One package's invocation inside a task graph."""
    package: str
    directory: str
    script: str
    command: str
    depends_on: list[str] = Field(default_factory=list)
    persistent: bool = False
    readiness: Optional[ReadinessCheck] = None


class TaskGraph(_CamelModel):
    """Steps of one task in build order, with the parallel stages."""
    steps: list[TaskStep] = Field(default_factory=list)
    stages: list[list[str]] = Field(default_factory=list)

    def get_step(self, package: str) -> TaskStep:
        for step in self.steps:
            if step.package == package:
                return step
        raise KeyError(package)


class RootManifest(_CamelModel):
    """Task graph for every workspace task, as written to ``monoforge.tasks.json``."""
    workspace: str
    package_manager: PackageManager = PackageManager.NPM
    build_order: list[str] = Field(default_factory=list)
    tasks: dict[str, TaskGraph] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2, exclude_none=True) + "\n"
