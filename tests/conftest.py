"""Shared pytest fixtures for the monoforge test suite.

Provides reusable fixtures for:
- Temporary workspace directories
- Workspace specifications (canonical three-package, scoped pnpm)
- Specification files on disk (YAML and JSON)
- Fake executors, spawners and readiness probes for the task runner
"""

from __future__ import annotations

import asyncio
import json
import textwrap
from pathlib import Path
from typing import Any

import pytest

from monoforge.models import PackageSpec, TaskInvocation, TaskStep, WorkspaceSpec


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_workspace_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated workspaces (auto-cleanup)."""
    workspace_dir = tmp_path / "workspace"
    yield workspace_dir


# ---------------------------------------------------------------------------
# Workspace specifications
# ---------------------------------------------------------------------------

@pytest.fixture
def acme_spec() -> WorkspaceSpec:
    """The canonical shared/server/client workspace."""
    return WorkspaceSpec(
        root_name="acme",
        description="Acme task tracker.",
        packages=[
            PackageSpec(name="client", kind="frontend", depends_on=["shared", "server"]),
            PackageSpec(name="server", kind="service", depends_on=["shared"]),
            PackageSpec(name="shared", kind="shared-library"),
        ],
    )


@pytest.fixture
def pnpm_spec() -> WorkspaceSpec:
    """A scoped pnpm workspace with a NestJS service and explicit tasks."""
    return WorkspaceSpec(
        root_name="orbit",
        scope="@orbit",
        package_manager="pnpm",
        packages=[
            PackageSpec(name="types", kind="shared-library"),
            PackageSpec(name="api", kind="service", template="nestjs", depends_on=["types"]),
            PackageSpec(name="web", kind="frontend", depends_on=["api", "types"], port=24000),
        ],
        task_definitions={
            "build": [
                TaskInvocation(package="types"),
                TaskInvocation(package="api"),
                TaskInvocation(package="web"),
            ],
            "dev": [
                TaskInvocation(package="api", persistent=True),
                TaskInvocation(package="web", persistent=True),
            ],
            "lint": [TaskInvocation(package="web", script="typecheck")],
        },
    )


@pytest.fixture
def acme_spec_data() -> dict[str, Any]:
    """The acme workspace as raw camelCase data, as read from a file."""
    return {
        "rootName": "acme",
        "description": "Acme task tracker.",
        "packages": [
            {"name": "shared", "kind": "shared-library"},
            {"name": "server", "kind": "service", "dependsOn": ["shared"]},
            {"name": "client", "kind": "frontend", "dependsOn": ["shared", "server"]},
        ],
        "taskDefinitions": {
            "build": ["shared", "server", "client"],
            "dev": [
                {"package": "server", "persistent": True},
                {"package": "client", "persistent": True},
            ],
        },
    }


@pytest.fixture
def spec_yaml_file(tmp_path: Path) -> Path:
    """The acme workspace written as YAML."""
    path = tmp_path / "workspace.yaml"
    path.write_text(
        textwrap.dedent(
            """\
            rootName: acme
            description: Acme task tracker.
            packages:
              - name: shared
                kind: shared-library
              - name: server
                kind: service
                dependsOn: [shared]
              - name: client
                kind: frontend
                dependsOn: [shared, server]
            taskDefinitions:
              build: [shared, server, client]
              dev:
                - package: server
                  persistent: true
                - package: client
                  persistent: true
            """
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def spec_json_file(tmp_path: Path, acme_spec_data: dict[str, Any]) -> Path:
    """The acme workspace written as JSON."""
    path = tmp_path / "workspace.json"
    path.write_text(json.dumps(acme_spec_data, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Task runner fakes
# ---------------------------------------------------------------------------

class FakeExecutor:
    """Records step execution and returns scripted exit codes.

    Tracks the peak number of steps running at once so tests can assert on
    parallelism and worker bounds.
    """

    def __init__(
        self,
        returncodes: dict[str, int] | None = None,
        delays: dict[str, float] | None = None,
        default_delay: float = 0.01,
    ) -> None:
        self.returncodes = returncodes or {}
        self.delays = delays or {}
        self.default_delay = default_delay
        self.started: list[str] = []
        self.finished: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.cwds: dict[str, Path] = {}
        self.running = 0
        self.peak = 0

    async def __call__(self, step: TaskStep, cwd: Path) -> tuple[int, str, str]:
        self.started.append(step.package)
        self.events.append(("start", step.package))
        self.cwds[step.package] = cwd
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delays.get(step.package, self.default_delay))
        finally:
            self.running -= 1
        self.finished.append(step.package)
        self.events.append(("end", step.package))
        code = self.returncodes.get(step.package, 0)
        return code, f"{step.package}: {step.command}", "" if code == 0 else "boom"


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``."""

    def __init__(self, name: str, exit_after: float | None = None, exit_code: int = 0) -> None:
        self.name = name
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self._exit_code = exit_code
        self._done = asyncio.Event()
        if exit_after is not None:
            asyncio.get_running_loop().call_later(exit_after, self._exit, exit_code)

    def _exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._done.set()

    async def wait(self) -> int:
        await self._done.wait()
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self._exit(-15)

    def kill(self) -> None:
        self.killed = True
        self._exit(-9)


class FakeSpawner:
    """Spawns ``FakeProcess`` objects and remembers them by package."""

    def __init__(self, exit_after: dict[str, float] | None = None, exit_codes: dict[str, int] | None = None) -> None:
        self.exit_after = exit_after or {}
        self.exit_codes = exit_codes or {}
        self.processes: dict[str, FakeProcess] = {}
        self.order: list[str] = []

    async def __call__(self, step: TaskStep, cwd: Path) -> FakeProcess:
        self.order.append(step.package)
        process = FakeProcess(
            step.package,
            exit_after=self.exit_after.get(step.package),
            exit_code=self.exit_codes.get(step.package, 0),
        )
        self.processes[step.package] = process
        return process


class FakeProbe:
    """Readiness probe that answers from a table instead of over HTTP."""

    def __init__(self, unready: set[str] | None = None) -> None:
        self.unready = unready or set()
        self.calls: list[tuple[str, float, float]] = []

    async def require(self, url: str, timeout: float = 60.0, interval: float = 2.0) -> None:
        from monoforge.errors import ReadinessTimeoutError

        self.calls.append((url, timeout, interval))
        await asyncio.sleep(0)
        if url in self.unready:
            raise ReadinessTimeoutError(url, timeout, 3)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def fake_spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()
