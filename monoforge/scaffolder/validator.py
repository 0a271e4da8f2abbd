"""Workspace specification validation.

``validate`` checks everything the rest of the scaffolder relies on before a
single file is rendered: unique package names, dependencies and task
invocations that point at declared packages, task scripts the package's
template defines, unique ports, and an acyclic dependency graph.  It never touches the filesystem.
"""

from __future__ import annotations

import re
from collections import Counter

from monoforge.errors import CycleError, ValidationError
from monoforge.models import PackageSpec, TaskInvocation, WorkspaceSpec

from .catalog import CATALOG

_TASK_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9:._-]*$")


def validate(spec: WorkspaceSpec) -> None:
    """Validate *spec*, raising on the first class of problem found.

    Shape problems (duplicates, dangling references, port clashes) are
    collected and reported together as one ``ValidationError``.  The cycle
    check only runs once the graph is well-formed.

    Raises:
        ValidationError: The specification is malformed.
        CycleError: The dependency graph contains a cycle.
    """
    issues = _collect_issues(spec)
    if issues:
        raise ValidationError(issues)

    cycle = find_cycle(spec.packages)
    if cycle:
        raise CycleError(cycle)


def _collect_issues(spec: WorkspaceSpec) -> list[str]:
    issues: list[str] = []

    if not spec.packages:
        issues.append("Workspace declares no packages")

    counts = Counter(p.name for p in spec.packages)
    for name in sorted(n for n, c in counts.items() if c > 1):
        issues.append(f"Duplicate package name '{name}' (declared {counts[name]} times)")

    declared = set(counts)
    by_name = {p.name: p for p in spec.packages}
    for package in spec.packages:
        for dep in package.depends_on:
            if dep not in declared and dep != package.name:
                issues.append(
                    f"Package '{package.name}' depends on undeclared package '{dep}'"
                )
        if package.port is not None and not package.listens:
            issues.append(
                f"Package '{package.name}' is a {package.kind.value} and cannot declare a port"
            )

    port_owners: dict[int, list[str]] = {}
    for package in spec.packages:
        if package.port is not None:
            port_owners.setdefault(package.port, []).append(package.name)
    for port, owners in sorted(port_owners.items()):
        if len(owners) > 1:
            issues.append(f"Port {port} claimed by more than one package: {', '.join(owners)}")

    for task, invocations in spec.task_definitions.items():
        if not _TASK_NAME_PATTERN.match(task):
            issues.append(f"Invalid task name '{task}'")
        if not invocations:
            issues.append(f"Task '{task}' has no invocations")
        seen: set[str] = set()
        for invocation in invocations:
            if invocation.package not in declared:
                issues.append(
                    f"Task '{task}' references undeclared package '{invocation.package}'"
                )
            elif invocation.package in seen:
                issues.append(
                    f"Task '{task}' invokes package '{invocation.package}' more than once"
                )
            else:
                issues.extend(_script_issues(task, invocation, by_name[invocation.package]))
            seen.add(invocation.package)

    return issues


def _script_issues(task: str, invocation: TaskInvocation, package: PackageSpec) -> list[str]:
    # Unknown templates and kind mismatches surface later as UnknownTemplateError.
    definition = CATALOG.get(package.template)
    if definition is None or definition.kind != package.kind:
        return []
    script = invocation.script or task
    if script in definition.scripts:
        return []
    return [
        f"Task '{task}' runs script '{script}' that package '{package.name}' "
        f"({package.template}) does not define; available: {', '.join(sorted(definition.scripts))}"
    ]


def find_cycle(packages: list[PackageSpec]) -> list[str]:
    """Return one dependency cycle as an ordered list of names, or ``[]``.

    The first name is repeated at the end (``["a", "b", "a"]``); a package
    that depends on itself yields ``["a", "a"]``.  Traversal visits names in
    sorted order so the reported cycle is deterministic.  Dependencies on
    undeclared packages are ignored.
    """
    graph = {p.name: list(p.depends_on) for p in packages}
    white, grey, black = 0, 1, 2
    colour = {name: white for name in graph}
    stack: list[str] = []

    def visit(name: str) -> list[str]:
        colour[name] = grey
        stack.append(name)
        for dep in sorted(graph[name]):
            if dep not in graph:
                continue
            if colour[dep] == grey:
                start = stack.index(dep)
                return stack[start:] + [dep]
            if colour[dep] == white:
                found = visit(dep)
                if found:
                    return found
        stack.pop()
        colour[name] = black
        return []

    for name in sorted(graph):
        if colour[name] == white:
            found = visit(name)
            if found:
                return found
    return []
