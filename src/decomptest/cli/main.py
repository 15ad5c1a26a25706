"""CLI entry point for decomptest."""
from __future__ import annotations

import logging
import sys
from typing import Optional, Tuple

import click

from decomptest import __version__, bootstrap
from decomptest.core import ARCHITECTURES
from decomptest.core.runner import KEEP_SCRATCH_POLICIES
from decomptest.errors import HarnessError
from decomptest.plan import RunOptions, build_registry, load_plan, run_plan


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"decomptest {__version__}")
    raise click.exceptions.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the decomptest version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Multi-architecture decompilation verification harness."""

    _configure_logging(verbose)
    bootstrap()
    ctx.obj = CliState(verbose=verbose)


_plan_option = click.option(
    "--plan",
    "plan_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="YAML plan file.",
)


@cli.command()
@_plan_option
@click.option(
    "--corpus",
    type=click.Path(file_okay=False),
    envvar="DECOMPTEST_CORPUS",
    help="Fixture corpus directory (overrides the plan).",
)
@click.option("--arch", "architectures", multiple=True, help="Only run cases for this architecture (repeatable).")
@click.option("--format", "formats", multiple=True, help="Only run cases for this object format (repeatable).")
@click.option("--cases", "case_filters", type=str, help="Comma-separated case filters (supports globs).")
@click.option("--tags", "tag_filters", type=str, help="Comma-separated tags to include.")
@click.option("--workers", type=click.IntRange(min=1), help="Number of cases to run in parallel.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Per-case timeout in seconds.")
@click.option(
    "--keep-scratch",
    type=click.Choice(list(KEEP_SCRATCH_POLICIES)),
    help="When to keep per-case scratch directories.",
)
@click.option("--list", "list_only", is_flag=True, help="List matched cases without running.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "json"]),
    default="terminal",
    show_default=True,
    help="Report format (terminal by default).",
)
@click.option("--report-path", type=str, help="Write the JSON report to this path.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def run(
    state: CliState,
    plan_path: str,
    corpus: Optional[str],
    architectures: Tuple[str, ...],
    formats: Tuple[str, ...],
    case_filters: Optional[str],
    tag_filters: Optional[str],
    workers: Optional[int],
    timeout: Optional[float],
    keep_scratch: Optional[str],
    list_only: bool,
    report_format: str,
    report_path: Optional[str],
    no_color: bool,
) -> None:
    """Run the decompilation matrix declared in a plan file."""

    options = RunOptions(
        corpus=corpus,
        architectures=architectures,
        formats=formats,
        cases=_split_csv(case_filters),
        tags=_split_csv(tag_filters),
        workers=workers,
        timeout=timeout,
        keep_scratch=keep_scratch,
        list_only=list_only,
    )
    try:
        plan = load_plan(plan_path)
        exit_code = run_plan(
            plan,
            options,
            report_format=report_format,
            report_path=report_path,
            use_color=not no_color,
        )
    except (HarnessError, ValueError, KeyError) as exc:
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(exit_code)


@cli.command(name="list")
@_plan_option
def list_cases(plan_path: str) -> None:
    """List the cases a plan declares."""

    try:
        case_registry = build_registry(load_plan(plan_path))
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    for case in case_registry.list_cases():
        expected = "must-not-crash" if case.expected is None else "facts"
        click.echo(f"{case.identifier()}  sample={case.sample.path}  expected={expected}")


@cli.command()
def architectures() -> None:
    """Show supported architectures and their calling conventions."""

    for arch, info in ARCHITECTURES.items():
        conventions = ", ".join(info.calling_conventions)
        click.echo(f"{arch.value:<8} {info.label:<8} timeout={info.default_timeout:g}s conventions: {conventions}")


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="decomptest", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return tuple()
    parts = [part.strip() for part in value.split(",") if part.strip()]
    return tuple(parts)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
