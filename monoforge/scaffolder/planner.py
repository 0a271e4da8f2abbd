"""Dependency ordering: turns a workspace specification into a ``BuildPlan``.

Packages are sorted with Kahn's algorithm, one level at a time.  Every level
(a *stage*) holds the packages whose dependencies are all in earlier stages;
inside a stage, names are processed in ascending lexicographic order so that
identical input always yields the identical plan.
"""

from __future__ import annotations

from monoforge.errors import CycleError
from monoforge.models import BuildPlan, PackageSpec, WorkspaceSpec

from .validator import find_cycle, validate


def plan(spec: WorkspaceSpec) -> BuildPlan:
    """Validate *spec* and compute its build plan.

    Raises:
        ValidationError: The specification is malformed.
        CycleError: The dependency graph contains a cycle.
    """
    validate(spec)
    return build_plan(spec)


def build_plan(spec: WorkspaceSpec) -> BuildPlan:
    """Compute the build plan of an already validated *spec*.

    Raises:
        CycleError: The dependency graph contains a cycle.
    """
    stages = order_packages(spec.packages)
    by_name = {p.name: p for p in spec.packages}
    ordered = tuple(by_name[name] for stage in stages for name in stage)
    return BuildPlan(
        packages=ordered,
        stages=tuple(tuple(stage) for stage in stages),
        ports=allocate_ports(ordered, spec.base_port),
    )


def build_graph(
    packages: list[PackageSpec],
) -> tuple[dict[str, set[str]], dict[str, int]]:
    """Build the adjacency map and in-degree table.

    An edge ``dep -> package`` means *dep* must be built before *package*.
    Dependencies on undeclared names are skipped; :func:`validate` reports
    them.
    """
    names = {p.name for p in packages}
    adj: dict[str, set[str]] = {name: set() for name in names}
    indeg: dict[str, int] = {name: 0 for name in names}

    for package in packages:
        for dep in package.depends_on:
            if dep not in names:
                continue
            if package.name not in adj[dep]:
                adj[dep].add(package.name)
                indeg[package.name] += 1

    return adj, indeg


def order_packages(packages: list[PackageSpec]) -> list[list[str]]:
    """Sort *packages* into dependency stages.

    Does not rely on prior validation: if the sort stalls, the stuck packages
    contain a cycle and ``CycleError`` is raised naming it.
    """
    adj, indeg = build_graph(packages)
    indeg = dict(indeg)

    stages: list[list[str]] = []
    current = sorted(name for name, degree in indeg.items() if degree == 0)
    processed = 0

    while current:
        stages.append(current)
        processed += len(current)
        ready: list[str] = []
        for node in current:
            for child in adj[node]:
                indeg[child] -= 1
                if indeg[child] == 0:
                    ready.append(child)
        current = sorted(ready)

    if processed != len(indeg):
        stuck = sorted(name for name, degree in indeg.items() if degree > 0)
        cycle = find_cycle([p for p in packages if p.name in stuck])
        raise CycleError(cycle or stuck + stuck[:1])

    return stages


def allocate_ports(packages: tuple[PackageSpec, ...], base_port: int) -> dict[str, int]:
    """Assign a port to every service and frontend, in plan order.

    Explicit ports are kept; the rest are handed out sequentially from
    *base_port*, skipping any port already claimed.
    """
    claimed = {p.port for p in packages if p.port is not None}
    ports: dict[str, int] = {}
    next_port = base_port
    for package in packages:
        if not package.listens:
            continue
        if package.port is not None:
            ports[package.name] = package.port
            continue
        while next_port in claimed:
            next_port += 1
        ports[package.name] = next_port
        claimed.add(next_port)
        next_port += 1
    return ports
