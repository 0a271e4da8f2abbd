"""Tests for workspace specification validation.

Covers:
- Valid specifications pass silently
- Duplicate names, dangling dependencies, port problems
- Task definitions referencing undeclared packages or undefined scripts
- Cycle detection, including self-dependencies
"""

from __future__ import annotations

import pytest

from monoforge.errors import CycleError, ValidationError
from monoforge.models import PackageSpec, TaskInvocation, WorkspaceSpec
from monoforge.scaffolder.validator import find_cycle, validate


pytestmark = pytest.mark.unit


def _spec(*packages: PackageSpec, **kwargs) -> WorkspaceSpec:
    return WorkspaceSpec(root_name="ws", packages=list(packages), **kwargs)


class TestValidate:
    def test_valid_spec(self, acme_spec, pnpm_spec):
        validate(acme_spec)
        validate(pnpm_spec)

    def test_no_packages(self):
        with pytest.raises(ValidationError, match="no packages"):
            validate(_spec())

    def test_duplicate_name(self):
        spec = _spec(
            PackageSpec(name="shared", kind="shared-library"),
            PackageSpec(name="server", kind="service"),
            PackageSpec(name="server", kind="service"),
        )
        with pytest.raises(ValidationError) as exc_info:
            validate(spec)
        assert not isinstance(exc_info.value, CycleError)
        assert exc_info.value.issues == ["Duplicate package name 'server' (declared 2 times)"]
        assert "server" in str(exc_info.value)

    def test_undeclared_dependency(self):
        spec = _spec(PackageSpec(name="client", kind="frontend", depends_on=["api"]))
        with pytest.raises(ValidationError, match="undeclared package 'api'"):
            validate(spec)

    def test_port_on_shared_library(self):
        spec = _spec(PackageSpec(name="lib", kind="shared-library", port=24000))
        with pytest.raises(ValidationError, match="cannot declare a port"):
            validate(spec)

    def test_duplicate_ports(self):
        spec = _spec(
            PackageSpec(name="a", kind="service", port=24000),
            PackageSpec(name="b", kind="frontend", port=24000),
        )
        with pytest.raises(ValidationError, match="Port 24000 claimed by more than one package: a, b"):
            validate(spec)

    def test_issues_are_collected(self):
        spec = _spec(
            PackageSpec(name="a", kind="service", depends_on=["ghost"]),
            PackageSpec(name="a", kind="service"),
        )
        with pytest.raises(ValidationError) as exc_info:
            validate(spec)
        assert len(exc_info.value.issues) == 2
        assert "2 problems found" in str(exc_info.value)

    def test_task_references_undeclared_package(self, acme_spec):
        spec = acme_spec.model_copy(
            update={"task_definitions": {"build": [TaskInvocation(package="mobile")]}}
        )
        with pytest.raises(ValidationError) as exc_info:
            validate(spec)
        assert exc_info.value.issues == ["Task 'build' references undeclared package 'mobile'"]

    def test_task_with_no_invocations(self, acme_spec):
        spec = acme_spec.model_copy(update={"task_definitions": {"build": []}})
        with pytest.raises(ValidationError, match="has no invocations"):
            validate(spec)

    def test_task_invokes_package_twice(self, acme_spec):
        spec = acme_spec.model_copy(
            update={
                "task_definitions": {
                    "build": [TaskInvocation(package="server"), TaskInvocation(package="server")]
                }
            }
        )
        with pytest.raises(ValidationError, match="more than once"):
            validate(spec)

    def test_invalid_task_name(self, acme_spec):
        spec = acme_spec.model_copy(
            update={"task_definitions": {"Build All": [TaskInvocation(package="server")]}}
        )
        with pytest.raises(ValidationError, match="Invalid task name"):
            validate(spec)

    def test_task_script_missing_from_template(self, acme_spec):
        spec = acme_spec.model_copy(
            update={
                "task_definitions": {
                    "start": [TaskInvocation(package="shared"), TaskInvocation(package="server")]
                }
            }
        )
        with pytest.raises(ValidationError) as exc_info:
            validate(spec)
        assert exc_info.value.issues == [
            "Task 'start' runs script 'start' that package 'shared' (ts-library) "
            "does not define; available: build, clean, dev, typecheck"
        ]

    def test_explicit_script_missing_from_template(self, acme_spec):
        spec = acme_spec.model_copy(
            update={
                "task_definitions": {"lint": [TaskInvocation(package="client", script="eslint")]}
            }
        )
        with pytest.raises(ValidationError, match="script 'eslint'.*'client' \\(react-vite\\)"):
            validate(spec)

    def test_explicit_script_defined_by_template(self, acme_spec):
        spec = acme_spec.model_copy(
            update={
                "task_definitions": {
                    "preview": [
                        TaskInvocation(package="server", script="start", persistent=True),
                        TaskInvocation(package="client", persistent=True),
                    ]
                }
            }
        )
        validate(spec)

    def test_unknown_template_left_to_renderer(self):
        spec = _spec(
            PackageSpec(name="api", kind="service", template="rails"),
            task_definitions={"build": [TaskInvocation(package="api")]},
        )
        validate(spec)

    def test_cycle(self):
        spec = _spec(
            PackageSpec(name="a", kind="service", depends_on=["b"]),
            PackageSpec(name="b", kind="service", depends_on=["a"]),
        )
        with pytest.raises(CycleError) as exc_info:
            validate(spec)
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc_info.value)

    def test_cycle_is_a_validation_error(self):
        spec = _spec(PackageSpec(name="a", kind="service", depends_on=["a"]))
        with pytest.raises(ValidationError):
            validate(spec)

    def test_shape_problems_reported_before_cycles(self):
        spec = _spec(
            PackageSpec(name="a", kind="service", depends_on=["b"]),
            PackageSpec(name="b", kind="service", depends_on=["a", "ghost"]),
        )
        with pytest.raises(ValidationError) as exc_info:
            validate(spec)
        assert not isinstance(exc_info.value, CycleError)


class TestFindCycle:
    def test_acyclic(self, acme_spec):
        assert find_cycle(acme_spec.packages) == []

    def test_self_dependency(self):
        assert find_cycle([PackageSpec(name="a", kind="service", depends_on=["a"])]) == ["a", "a"]

    def test_longer_cycle_skips_tail(self):
        packages = [
            PackageSpec(name="entry", kind="frontend", depends_on=["x"]),
            PackageSpec(name="x", kind="service", depends_on=["y"]),
            PackageSpec(name="y", kind="service", depends_on=["z"]),
            PackageSpec(name="z", kind="shared-library", depends_on=["x"]),
        ]
        assert find_cycle(packages) == ["x", "y", "z", "x"]

    def test_ignores_undeclared(self):
        assert find_cycle([PackageSpec(name="a", kind="service", depends_on=["ghost"])]) == []
