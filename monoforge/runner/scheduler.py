"""Dataflow task scheduler for generated workspaces.

Executes one task graph from ``monoforge.tasks.json``.  Each step starts as
soon as every step it depends on has finished successfully (or, for
long-running steps, reported ready); independent steps run concurrently on a
bounded worker pool.

Failure handling is fail-fast but not fail-silent: after the first failure
no new step starts, and steps that are already running drain to completion.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError
from rich.markup import escape

from monoforge.errors import ReadinessTimeoutError, RunnerError
from monoforge.models import RootManifest, TaskGraph, TaskStep
from monoforge.scaffolder.manifest import TASKS_MANIFEST
from monoforge.utils import (
    console,
    format_duration,
    print_header,
    run_command,
    spawn_command,
    tail,
)

from .readiness import ReadinessProbe

Executor = Callable[[TaskStep, Path], Awaitable[tuple[int, str, str]]]
Spawner = Callable[[TaskStep, Path], Awaitable[Any]]

_TERMINATE_GRACE = 10.0


class StepStatus(str, Enum):
    """Outcome of a single task step."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    READY = "ready"
    STOPPED = "stopped"


# Statuses that let dependents start.
_UNBLOCKING = (StepStatus.SUCCEEDED, StepStatus.READY)


@dataclass
class StepResult:
    """Structured result of one step."""

    package: str
    status: StepStatus = StepStatus.PENDING
    returncode: int | None = None
    duration: float = 0.0
    output: str = ""
    error: str = ""


@dataclass
class RunReport:
    """Structured result of one task run."""

    task: str
    results: dict[str, StepResult] = field(default_factory=dict)
    started: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def failed(self) -> list[str]:
        return [n for n, r in self.results.items() if r.status == StepStatus.FAILED]

    @property
    def skipped(self) -> list[str]:
        return [n for n, r in self.results.items() if r.status == StepStatus.SKIPPED]

    @property
    def success(self) -> bool:
        return not self.failed and not self.skipped


class TaskScheduler:
    """Runs task graphs from a workspace's root manifest.

    Args:
        manifest: The parsed root manifest.
        root: Workspace root; step directories are relative to it.
        max_workers: Concurrency bound.  Defaults to the widest stage of the
            task being run.
        task_timeout: Seconds before a short-lived step is killed.
        probe: Readiness probe used for long-running steps.
        executor: Coroutine running a short-lived step, returning
            ``(returncode, stdout, stderr)``.
        spawner: Coroutine starting a long-running step, returning a process
            handle with ``wait()``, ``terminate()``, ``kill()`` and
            ``returncode``.
        readiness_timeout: Overrides the per-step readiness timeout from
            the manifest.
        readiness_interval: Overrides the per-step polling interval.
        quiet: Suppress console output.
    """

    def __init__(
        self,
        manifest: RootManifest,
        root: str | Path,
        *,
        max_workers: int | None = None,
        task_timeout: float = 600,
        probe: ReadinessProbe | None = None,
        executor: Executor | None = None,
        spawner: Spawner | None = None,
        readiness_timeout: float | None = None,
        readiness_interval: float | None = None,
        quiet: bool = False,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise RunnerError(f"max_workers must be at least 1, got {max_workers}")
        self.manifest = manifest
        self.root = Path(root)
        self.max_workers = max_workers
        self.task_timeout = task_timeout
        self.probe = probe or ReadinessProbe()
        self.executor = executor or self._run_step_command
        self.spawner = spawner or self._spawn_step_command
        self.readiness_timeout = readiness_timeout
        self.readiness_interval = readiness_interval
        self.quiet = quiet
        self._aborted = False
        self._processes: dict[str, Any] = {}

    @classmethod
    def from_workspace(cls, root: str | Path, **kwargs: Any) -> "TaskScheduler":
        """Load ``monoforge.tasks.json`` from *root* and build a scheduler.

        Raises:
            RunnerError: The manifest is missing or malformed.
        """
        path = Path(root) / TASKS_MANIFEST
        if not path.is_file():
            raise RunnerError(f"No {TASKS_MANIFEST} found in {Path(root).resolve()}")
        try:
            manifest = RootManifest.model_validate_json(path.read_text(encoding="utf-8"))
        except PydanticValidationError as exc:
            raise RunnerError(f"Malformed {TASKS_MANIFEST}: {exc}") from exc
        return cls(manifest, root, **kwargs)

    # -- Public API --------------------------------------------------------

    async def run(self, task: str) -> RunReport:
        """Execute *task* and return the per-step results.

        Raises:
            RunnerError: The task is unknown or its graph is inconsistent.
        """
        graph = self._graph(task)
        workers = self.max_workers or max((len(s) for s in graph.stages), default=1) or 1
        semaphore = asyncio.Semaphore(workers)
        finished = {step.package: asyncio.Event() for step in graph.steps}
        report = RunReport(
            task=task, results={step.package: StepResult(step.package) for step in graph.steps}
        )
        self._aborted = False
        self._processes = {}
        start = time.monotonic()

        if not self.quiet:
            print_header(f"{self.manifest.workspace}: {task} ({len(graph.steps)} steps, {workers} workers)")

        async def run_step(step: TaskStep) -> None:
            result = report.results[step.package]
            try:
                for dep in step.depends_on:
                    await finished[dep].wait()
                if self._aborted or any(
                    report.results[dep].status not in _UNBLOCKING for dep in step.depends_on
                ):
                    result.status = StepStatus.SKIPPED
                    return
                async with semaphore:
                    if self._aborted:
                        result.status = StepStatus.SKIPPED
                        return
                    report.started.append(step.package)
                    if step.persistent:
                        await self._launch(step, result)
                    else:
                        await self._execute(step, result)
                if result.status == StepStatus.FAILED:
                    self._aborted = True
            finally:
                finished[step.package].set()
                self._announce(result)

        try:
            await asyncio.gather(*(run_step(step) for step in graph.steps))
        except asyncio.CancelledError:
            await self._stop_all(report)
            raise

        if self._processes:
            await self._supervise(report)

        report.duration = time.monotonic() - start
        return report

    # -- Step execution ----------------------------------------------------

    async def _execute(self, step: TaskStep, result: StepResult) -> None:
        if not self.quiet:
            console.print(f"  [dim]> {step.package}: {escape(step.command)}[/dim]")
        started = time.monotonic()
        try:
            returncode, stdout, stderr = await self.executor(step, self.root / step.directory)
        except Exception as exc:
            result.status = StepStatus.FAILED
            result.error = f"{type(exc).__name__}: {exc}"
        else:
            result.returncode = returncode
            result.output = tail("\n".join(part for part in (stdout, stderr) if part))
            if returncode == 0:
                result.status = StepStatus.SUCCEEDED
            else:
                result.status = StepStatus.FAILED
                result.error = f"exit code {returncode}"
        result.duration = time.monotonic() - started

    async def _launch(self, step: TaskStep, result: StepResult) -> None:
        if not self.quiet:
            console.print(f"  [dim]> {step.package}: {escape(step.command)} (long-running)[/dim]")
        started = time.monotonic()
        try:
            process = await self.spawner(step, self.root / step.directory)
        except Exception as exc:
            result.status = StepStatus.FAILED
            result.error = f"{type(exc).__name__}: {exc}"
            result.duration = time.monotonic() - started
            return
        self._processes[step.package] = process

        if step.readiness is not None:
            try:
                await self.probe.require(
                    step.readiness.url,
                    timeout=self.readiness_timeout or step.readiness.timeout,
                    interval=self.readiness_interval or step.readiness.interval,
                )
            except ReadinessTimeoutError as exc:
                result.status = StepStatus.FAILED
                result.error = str(exc)
                await self._terminate(process)
                result.returncode = process.returncode
                del self._processes[step.package]
                result.duration = time.monotonic() - started
                return

        if process.returncode is not None:
            result.status = StepStatus.FAILED
            result.returncode = process.returncode
            result.error = f"exited with code {process.returncode} before becoming ready"
            del self._processes[step.package]
        else:
            result.status = StepStatus.READY
        result.duration = time.monotonic() - started

    async def _supervise(self, report: RunReport) -> None:
        """Keep long-running steps alive until one exits, then stop the rest."""
        if self._aborted:
            await self._stop_all(report)
            return

        waiters = {
            asyncio.ensure_future(process.wait()): name
            for name, process in self._processes.items()
        }
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            for waiter in waiters:
                waiter.cancel()
            await self._stop_all(report)
            raise

        for waiter in done:
            name = waiters[waiter]
            returncode = waiter.result()
            result = report.results[name]
            result.returncode = returncode
            if returncode == 0:
                result.status = StepStatus.STOPPED
            else:
                result.status = StepStatus.FAILED
                result.error = f"exited with code {returncode}"
            del self._processes[name]
            self._announce(result)

        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()
        await self._stop_all(report)

    async def _stop_all(self, report: RunReport) -> None:
        for name, process in list(self._processes.items()):
            await self._terminate(process)
            result = report.results[name]
            result.returncode = process.returncode
            if result.status == StepStatus.READY:
                result.status = StepStatus.STOPPED
        self._processes.clear()

    @staticmethod
    async def _terminate(process: Any) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=_TERMINATE_GRACE)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    # -- Defaults ----------------------------------------------------------

    async def _run_step_command(self, step: TaskStep, cwd: Path) -> tuple[int, str, str]:
        return await run_command(step.command, cwd=cwd, timeout=self.task_timeout)

    async def _spawn_step_command(self, step: TaskStep, cwd: Path) -> Any:
        return await spawn_command(step.command, cwd=cwd)

    # -- Helpers -----------------------------------------------------------

    def _graph(self, task: str) -> TaskGraph:
        graph = self.manifest.tasks.get(task)
        if graph is None:
            known = ", ".join(sorted(self.manifest.tasks)) or "(none)"
            raise RunnerError(f"Unknown task '{task}'. Known tasks: {known}")
        names = {step.package for step in graph.steps}
        for step in graph.steps:
            missing = [dep for dep in step.depends_on if dep not in names]
            if missing:
                raise RunnerError(
                    f"Task '{task}': step '{step.package}' waits for unknown step(s) {missing}"
                )
        return graph

    def _announce(self, result: StepResult) -> None:
        if self.quiet:
            return
        styles = {
            StepStatus.SUCCEEDED: ("green", "+"),
            StepStatus.READY: ("green", "~"),
            StepStatus.STOPPED: ("dim", "-"),
            StepStatus.SKIPPED: ("yellow", "-"),
            StepStatus.FAILED: ("red", "x"),
        }
        colour, mark = styles.get(result.status, ("white", "?"))
        line = f"  [{colour}]{mark}[/{colour}] {result.package} {result.status.value}"
        if result.duration:
            line += f" in {format_duration(result.duration)}"
        if result.error:
            line += f" [red]({escape(result.error)})[/red]"
        console.print(line)
        if result.status == StepStatus.FAILED and result.output:
            console.print(f"[dim]{escape(result.output)}[/dim]")
