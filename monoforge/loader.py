"""Load a ``WorkspaceSpec`` from a YAML or JSON file.

File formats live here, at the edge; the scaffolding core only ever sees a
validated ``WorkspaceSpec``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from monoforge.errors import ValidationError
from monoforge.models import WorkspaceSpec
from monoforge.utils import load_json, load_yaml

YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


def load_workspace_spec(path: str | Path) -> WorkspaceSpec:
    """Read and validate the workspace specification at *path*.

    The format is chosen by suffix: ``.yaml``/``.yml`` or ``.json``.

    Raises:
        ValidationError: The file is missing, unparsable, or does not
            describe a valid ``WorkspaceSpec``.
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"Specification file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix in YAML_SUFFIXES:
            data = load_yaml(path)
        elif suffix in JSON_SUFFIXES:
            data = load_json(path)
        else:
            raise ValidationError(
                f"Unsupported specification format '{suffix or path.name}' "
                "(expected .yaml, .yml or .json)"
            )
    except yaml.YAMLError as exc:
        raise ValidationError(f"{path.name}: invalid YAML: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{path.name}: invalid JSON: {exc}") from exc

    return parse_workspace_spec(data, source=path.name)


def parse_workspace_spec(data: Any, source: str = "<spec>") -> WorkspaceSpec:
    """Validate already-parsed *data* into a ``WorkspaceSpec``.

    Raises:
        ValidationError: One issue per pydantic error, prefixed by location.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{source}: expected a mapping at the top level")
    try:
        return WorkspaceSpec.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError([_format_error(source, err) for err in exc.errors()]) from exc


def _format_error(source: str, error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    prefix = f"{source}: {location}" if location else source
    return f"{prefix}: {error.get('msg', 'invalid value')}"
