"""monoforge runner -- executes task graphs of generated workspaces.

Reads ``monoforge.tasks.json`` from a workspace root and runs one named task
across its packages: dependencies first, independent packages in parallel,
long-running processes gated on their health endpoints.
"""

from monoforge.runner.readiness import ReadinessProbe, ReadinessResult
from monoforge.runner.scheduler import RunReport, StepResult, StepStatus, TaskScheduler

__all__ = [
    "ReadinessProbe",
    "ReadinessResult",
    "RunReport",
    "StepResult",
    "StepStatus",
    "TaskScheduler",
]
