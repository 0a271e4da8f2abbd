"""monoforge configuration.

Typed settings for the CLI.  All settings use Pydantic v2 models so they are
validated at construction time and can be serialised to/from JSON or read
from environment variables.  The scaffolding core never reads these; the CLI
translates them into explicit arguments.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ReadinessConfig(BaseModel):
    """Polling budget for health endpoints of long-running steps.

    ``timeout`` and ``interval`` are unset by default so the per-step values
    recorded in ``monoforge.tasks.json`` apply.
    """

    timeout: float | None = Field(
        default=None, gt=0, description="Seconds before a step counts as not ready; overrides the manifest"
    )
    interval: float | None = Field(
        default=None, gt=0, description="Seconds between attempts; overrides the manifest"
    )
    request_timeout: float = Field(default=5.0, gt=0, description="Per-request timeout in seconds")


class RunnerConfig(BaseModel):
    """Tuning knobs for the task runner."""

    max_workers: int | None = Field(
        default=None, ge=1, description="Concurrent steps; defaults to the widest stage"
    )
    task_timeout: int = Field(default=600, ge=1, description="Per-step timeout in seconds")
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)


class Config(BaseModel):
    """Global monoforge configuration."""

    output_dir: Path = Field(default=Path("."))
    overwrite: bool = Field(default=False)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            MONOFORGE_OUTPUT_DIR, MONOFORGE_OVERWRITE, MONOFORGE_MAX_WORKERS,
            MONOFORGE_TASK_TIMEOUT, MONOFORGE_READINESS_TIMEOUT,
            MONOFORGE_READINESS_INTERVAL.
        """
        readiness_kwargs: dict[str, Any] = {}
        if os.environ.get("MONOFORGE_READINESS_TIMEOUT"):
            readiness_kwargs["timeout"] = float(os.environ["MONOFORGE_READINESS_TIMEOUT"])
        if os.environ.get("MONOFORGE_READINESS_INTERVAL"):
            readiness_kwargs["interval"] = float(os.environ["MONOFORGE_READINESS_INTERVAL"])

        runner_kwargs: dict[str, Any] = {}
        if os.environ.get("MONOFORGE_MAX_WORKERS"):
            runner_kwargs["max_workers"] = int(os.environ["MONOFORGE_MAX_WORKERS"])
        if os.environ.get("MONOFORGE_TASK_TIMEOUT"):
            runner_kwargs["task_timeout"] = int(os.environ["MONOFORGE_TASK_TIMEOUT"])

        overwrite = os.environ.get("MONOFORGE_OVERWRITE")

        return cls(
            output_dir=Path(os.environ.get("MONOFORGE_OUTPUT_DIR", ".")),
            overwrite=False if overwrite is None else overwrite.strip().lower() in _TRUE_VALUES,
            runner=RunnerConfig(
                readiness=ReadinessConfig(**readiness_kwargs),
                **runner_kwargs,
            ),
        )
