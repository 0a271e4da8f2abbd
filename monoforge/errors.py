"""Exception hierarchy for monoforge.

Every failure raised by the scaffolding core is a ``ScaffoldError`` subclass
carrying structured attributes, so callers (the CLI, tests, other tools) can
react without parsing messages.
"""

from __future__ import annotations


class MonoforgeError(Exception):
    """Base class for all monoforge errors."""


# ---------------------------------------------------------------------------
# Scaffolding core
# ---------------------------------------------------------------------------


class ScaffoldError(MonoforgeError):
    """Raised when a scaffolding run cannot complete."""


class ValidationError(ScaffoldError):
    """The workspace specification is malformed.

    Attributes:
        issues: One human-readable line per problem found.
    """

    def __init__(self, issues: list[str] | str) -> None:
        if isinstance(issues, str):
            issues = [issues]
        self.issues = list(issues)
        if len(self.issues) == 1:
            message = self.issues[0]
        else:
            message = f"{len(self.issues)} problems found:\n" + "\n".join(
                f"  - {issue}" for issue in self.issues
            )
        super().__init__(message)


class CycleError(ValidationError):
    """The package dependency graph contains a cycle.

    ``cycle`` lists the package names along the cycle with the first name
    repeated at the end, e.g. ``["client", "server", "client"]``.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UnknownTemplateError(ScaffoldError):
    """A package names a template the catalog does not provide for its kind."""

    def __init__(self, package: str, template: str, kind: str, reason: str = "") -> None:
        self.package = package
        self.template = template
        self.kind = kind
        detail = reason or f"unknown template '{template}'"
        super().__init__(f"Package '{package}' (kind '{kind}'): {detail}")


class WriteError(ScaffoldError):
    """Materializing artifacts on disk failed.

    Attributes:
        path: The artifact path that could not be written (relative).
        committed: Artifact paths already written before the failure.
        pending: Artifact paths not written, including ``path``.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        committed: list[str] | None = None,
        pending: list[str] | None = None,
    ) -> None:
        self.path = path
        self.committed = list(committed or [])
        self.pending = list(pending or [])
        super().__init__(
            f"{message} ({len(self.committed)} committed, {len(self.pending)} pending)"
        )


# ---------------------------------------------------------------------------
# Task runner
# ---------------------------------------------------------------------------


class RunnerError(MonoforgeError):
    """The task runner was given an unusable manifest or task name."""


class ReadinessTimeoutError(RunnerError):
    """A long-running step did not report ready within its timeout."""

    def __init__(self, url: str, timeout: float, attempts: int) -> None:
        self.url = url
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"{url} not ready after {attempts} attempt(s) within {timeout:g}s"
        )
