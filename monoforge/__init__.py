"""monoforge -- scaffolds multi-package TypeScript workspaces and runs their tasks."""

__version__ = "0.1.0"

from monoforge.errors import (  # noqa: E402
    CycleError,
    MonoforgeError,
    ReadinessTimeoutError,
    RunnerError,
    ScaffoldError,
    UnknownTemplateError,
    ValidationError,
    WriteError,
)
from monoforge.models import (  # noqa: E402
    BuildPlan,
    GeneratedArtifact,
    PackageKind,
    PackageManager,
    PackageSpec,
    TaskInvocation,
    WorkspaceSpec,
)
from monoforge.scaffolder import generate, plan, render_workspace, validate  # noqa: E402

__all__ = [
    "BuildPlan",
    "CycleError",
    "GeneratedArtifact",
    "MonoforgeError",
    "PackageKind",
    "PackageManager",
    "PackageSpec",
    "ReadinessTimeoutError",
    "RunnerError",
    "ScaffoldError",
    "TaskInvocation",
    "UnknownTemplateError",
    "ValidationError",
    "WorkspaceSpec",
    "WriteError",
    "__version__",
    "generate",
    "plan",
    "render_workspace",
    "validate",
]
