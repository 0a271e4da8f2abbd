"""Jinja2 template rendering for workspace scaffolding.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``monoforge/scaffolder/templates/`` directory and renders them with
package-specific context data.  Rendering never touches the output
directory: every method returns strings, and the generator decides when the
results are written.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for workspace scaffolding.

    The renderer discovers ``.j2`` template files under a configurable
    template directory.  Each package template lives in its own
    subdirectory (``express/``, ``react-vite/`` ...); shared fragments live
    under ``_partials/`` and are pulled in with ``{% include %}``.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["title_case"] = _title_case_filter

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"express/src/index.ts.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        template = self.env.from_string(template_string)
        return template.render(**context)

    # -- Tree rendering ----------------------------------------------------

    def render_tree(
        self,
        template_prefix: str,
        context: dict[str, Any],
        *,
        skip_patterns: list[str] | None = None,
    ) -> dict[str, str]:
        """Render every ``*.j2`` file under *template_prefix*.

        The directory structure is preserved: a template at
        ``express/src/index.ts.j2`` rendered with ``template_prefix="express"``
        comes back under the key ``"src/index.ts"``.

        Args:
            template_prefix: Subdirectory inside the template root to scan.
            context: Template context variables.
            skip_patterns: Optional list of path substrings to skip.

        Returns:
            Mapping of relative POSIX output path to rendered content, in
            sorted path order.
        """
        skip_patterns = skip_patterns or []
        rendered: dict[str, str] = {}

        for rel in self.list_templates(template_prefix):
            rel_in_prefix = rel[len(template_prefix) + 1:]
            if any(pat in rel_in_prefix for pat in skip_patterns):
                continue
            output_name = rel_in_prefix[: -len(".j2")]
            rendered[output_name] = self.render(rel, context)

        return rendered

    # -- Utility -----------------------------------------------------------

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*.

        Paths are relative to the template root directory and always use
        forward slashes.
        """
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*.j2")
        )

    def has_templates(self, prefix: str) -> bool:
        """Whether the template root holds a non-empty *prefix* directory."""
        return bool(self.list_templates(prefix))


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_.\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-.\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _title_case_filter(value: str) -> str:
    """Convert ``api-server`` to ``Api Server``."""
    parts = re.split(r"[-_.\s]+", value)
    return " ".join(word.capitalize() for word in parts if word)
