"""Command-line interface for monoforge.

Subcommands::

    monoforge validate SPEC
    monoforge plan SPEC
    monoforge generate SPEC [-o DIR] [--overwrite] [--dry-run]
    monoforge run TASK [-C DIR] [--max-workers N]
    monoforge templates

The CLI owns file formats, environment variables and console output; every
``MonoforgeError`` is reported here and turned into exit code 1.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rich.markup import escape
from rich.table import Table

from monoforge import __version__
from monoforge.config import Config
from monoforge.errors import MonoforgeError, ValidationError, WriteError
from monoforge.loader import load_workspace_spec
from monoforge.models import DEFAULT_TEMPLATES
from monoforge.runner import ReadinessProbe, RunReport, StepStatus, TaskScheduler
from monoforge.scaffolder import CATALOG, WorkspaceGenerator, plan, validate
from monoforge.utils import (
    console,
    format_duration,
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_validate(args: argparse.Namespace, config: Config) -> int:
    spec = load_workspace_spec(args.spec)
    validate(spec)
    print_success(f"{args.spec}: {len(spec.packages)} packages, specification is valid")
    return 0


def cmd_plan(args: argparse.Namespace, config: Config) -> int:
    spec = load_workspace_spec(args.spec)
    build_plan = plan(spec)

    table = Table(title=f"Build plan: {spec.root_name}", show_header=True, header_style="bold cyan")
    table.add_column("Stage", justify="right", style="dim")
    table.add_column("Package", style="bold")
    table.add_column("Kind")
    table.add_column("Template")
    table.add_column("Port", justify="right")
    table.add_column("Depends on")

    for stage_index, stage in enumerate(build_plan.stages, start=1):
        for name in stage:
            package = build_plan.get_package(name)
            port = build_plan.ports.get(name)
            table.add_row(
                str(stage_index),
                name,
                package.kind.value,
                package.template,
                str(port) if port is not None else "-",
                ", ".join(package.depends_on) or "-",
            )

    console.print(table)
    console.print()
    console.print(f"Build order: {' -> '.join(build_plan.names)}")
    return 0


def cmd_generate(args: argparse.Namespace, config: Config) -> int:
    spec = load_workspace_spec(args.spec)
    target = Path(args.output) if args.output else config.output_dir
    overwrite = config.overwrite or args.overwrite
    generator = WorkspaceGenerator(spec)

    if args.dry_run:
        artifacts = generator.render()
        print_header(f"Dry run: {spec.root_name} ({len(artifacts)} files)")
        for artifact in artifacts:
            console.print(f"  {artifact.path}")
        return 0

    try:
        artifacts = asyncio.run(generator.generate(target, overwrite=overwrite))
    except WriteError as exc:
        if exc.committed:
            print_warning(
                f"{len(exc.committed)} files were written before the failure; "
                f"{len(exc.pending)} were not"
            )
        raise

    assert generator.plan is not None
    print_summary_table(
        {
            "Workspace": spec.root_name,
            "Target": str(target.resolve()),
            "Packages": str(len(generator.plan)),
            "Files": str(len(artifacts)),
            "Build order": " -> ".join(generator.plan.names),
        },
        title="Generated workspace",
    )
    print_success(f"Workspace '{spec.root_name}' written to {target}")
    return 0


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    runner_config = config.runner
    scheduler = TaskScheduler.from_workspace(
        args.directory,
        max_workers=args.max_workers or runner_config.max_workers,
        task_timeout=runner_config.task_timeout,
        probe=ReadinessProbe(request_timeout=runner_config.readiness.request_timeout),
        readiness_timeout=runner_config.readiness.timeout,
        readiness_interval=runner_config.readiness.interval,
    )
    try:
        report = asyncio.run(scheduler.run(args.task))
    except KeyboardInterrupt:
        print_warning("Interrupted")
        return 130
    _print_report(report)
    return 0 if report.success else 1


def cmd_templates(args: argparse.Namespace, config: Config) -> int:
    table = Table(title="Templates", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold")
    table.add_column("Kind")
    table.add_column("Description")
    table.add_column("Default", justify="center")

    for template_id in sorted(CATALOG):
        definition = CATALOG[template_id]
        is_default = DEFAULT_TEMPLATES[definition.kind.value] == template_id
        table.add_row(
            template_id,
            definition.kind.value,
            definition.label,
            "*" if is_default else "",
        )
    console.print(table)
    return 0


def _print_report(report: RunReport) -> None:
    table = Table(title=f"Task '{report.task}'", show_header=True, header_style="bold cyan")
    table.add_column("Package", style="bold")
    table.add_column("Status")
    table.add_column("Exit", justify="right")
    table.add_column("Duration", justify="right")

    colours = {
        StepStatus.SUCCEEDED: "green",
        StepStatus.READY: "green",
        StepStatus.STOPPED: "dim",
        StepStatus.SKIPPED: "yellow",
        StepStatus.FAILED: "red",
    }
    for name, result in report.results.items():
        colour = colours.get(result.status, "white")
        table.add_row(
            name,
            f"[{colour}]{result.status.value}[/{colour}]",
            "-" if result.returncode is None else str(result.returncode),
            format_duration(result.duration) if result.duration else "-",
        )
    console.print(table)

    if report.success:
        print_success(f"Task '{report.task}' finished in {format_duration(report.duration)}")
    else:
        print_error(
            f"Task '{report.task}' failed: {', '.join(report.failed) or 'none'} failed, "
            f"{len(report.skipped)} skipped"
        )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monoforge",
        description="monoforge -- multi-package workspace scaffolder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  monoforge plan workspace.yaml\n"
            "  monoforge generate workspace.yaml -o ./acme\n"
            "  monoforge run dev -C ./acme\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help="JSON configuration file (default: read MONOFORGE_* environment variables)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Validate a workspace specification")
    p_validate.add_argument("spec", help="Path to the specification (.yaml, .yml or .json)")
    p_validate.set_defaults(handler=cmd_validate)

    p_plan = sub.add_parser("plan", help="Show the build order and port allocation")
    p_plan.add_argument("spec", help="Path to the specification (.yaml, .yml or .json)")
    p_plan.set_defaults(handler=cmd_plan)

    p_generate = sub.add_parser("generate", help="Generate the workspace")
    p_generate.add_argument("spec", help="Path to the specification (.yaml, .yml or .json)")
    p_generate.add_argument(
        "--output", "-o",
        default=None,
        help="Target directory (default: configured output_dir, '.')",
    )
    p_generate.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing files whose content differs (default: refuse)",
    )
    p_generate.add_argument(
        "--dry-run",
        action="store_true",
        help="Render and list files without writing anything",
    )
    p_generate.set_defaults(handler=cmd_generate)

    p_run = sub.add_parser("run", help="Run a workspace task across its packages")
    p_run.add_argument("task", help="Task name from monoforge.tasks.json")
    p_run.add_argument(
        "--directory", "-C",
        default=".",
        help="Workspace root (default: current directory)",
    )
    p_run.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum concurrent steps (default: widest stage)",
    )
    p_run.set_defaults(handler=cmd_run)

    p_templates = sub.add_parser("templates", help="List available package templates")
    p_templates.set_defaults(handler=cmd_templates)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``monoforge`` and ``python -m monoforge``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.load(Path(args.config)) if args.config else Config.from_env()
    except (OSError, ValueError) as exc:
        print_error(f"Error: invalid configuration: {escape(str(exc))}")
        sys.exit(1)

    try:
        code = args.handler(args, config)
    except ValidationError as exc:
        print_error("Error: invalid workspace specification")
        for issue in exc.issues:
            console.print(f"  - {escape(issue)}")
        sys.exit(1)
    except MonoforgeError as exc:
        print_error(f"Error: {escape(str(exc))}")
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
