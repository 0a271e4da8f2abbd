"""Unit tests for specification loading (monoforge.loader)."""

from __future__ import annotations

import pytest

from monoforge.errors import ValidationError
from monoforge.loader import load_workspace_spec, parse_workspace_spec
from monoforge.models import PackageKind


pytestmark = pytest.mark.unit


class TestLoadWorkspaceSpec:
    def test_yaml(self, spec_yaml_file):
        spec = load_workspace_spec(spec_yaml_file)
        assert spec.root_name == "acme"
        assert spec.get_package("client").depends_on == ["server", "shared"]
        dev = spec.task_definitions["dev"]
        assert [i.package for i in dev] == ["server", "client"]
        assert all(i.persistent for i in dev)

    def test_json(self, spec_json_file):
        spec = load_workspace_spec(spec_json_file)
        assert spec.get_package("shared").kind == PackageKind.SHARED_LIBRARY

    def test_yaml_and_json_agree(self, spec_yaml_file, spec_json_file):
        assert load_workspace_spec(spec_yaml_file) == load_workspace_spec(spec_json_file)

    def test_yml_suffix(self, tmp_path, spec_yaml_file):
        path = tmp_path / "ws.yml"
        path.write_text(spec_yaml_file.read_text(encoding="utf-8"), encoding="utf-8")
        assert load_workspace_spec(path).root_name == "acme"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            load_workspace_spec(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "ws.toml"
        path.write_text("rootName = 'x'\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="Unsupported"):
            load_workspace_spec(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "ws.yaml"
        path.write_text("packages: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="invalid YAML"):
            load_workspace_spec(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "ws.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationError, match="invalid JSON"):
            load_workspace_spec(path)

    def test_schema_errors_become_issues(self, tmp_path):
        path = tmp_path / "ws.yaml"
        path.write_text(
            "rootName: acme\npackages:\n  - name: Server\n    kind: database\n",
            encoding="utf-8",
        )
        with pytest.raises(ValidationError) as exc_info:
            load_workspace_spec(path)
        issues = exc_info.value.issues
        assert len(issues) >= 2
        assert all(issue.startswith("ws.yaml: packages.0") for issue in issues)


class TestParseWorkspaceSpec:
    def test_non_mapping(self):
        with pytest.raises(ValidationError, match="mapping"):
            parse_workspace_spec(["not", "a", "mapping"])

    def test_missing_root_name(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_workspace_spec({"packages": []}, source="inline")
        assert exc_info.value.issues[0].startswith("inline: rootName")
