"""Executor tying a loaded plan to the matrix runner and reporters."""
from __future__ import annotations

import fnmatch
import logging
from typing import List, Sequence

import click

from decomptest.backends import CommandDriver, DecompilerDriver, driver_manager
from decomptest.core import SampleResolver, TestCase
from decomptest.core.runner import MatrixRunner
from decomptest.registry import CaseRegistry, registry
from decomptest.reporting import JsonReporter, ReportManager, Reporter, TerminalReporter

from .models import DecompilerConfig, ExecutionPlan, RunOptions

logger = logging.getLogger(__name__)


def build_registry(plan: ExecutionPlan) -> CaseRegistry:
    """Freeze the plan's cases (plus built-ins when requested) into a registry."""

    cases: List[TestCase] = list(plan.cases)
    if plan.include_builtins:
        declared = {case.name for case in cases}
        cases.extend(case for case in registry.list_cases() if case.name not in declared)
    return CaseRegistry(cases).freeze()


def select_cases(case_registry: CaseRegistry, options: RunOptions) -> List[TestCase]:
    selected: List[TestCase] = []
    if options.architectures:
        arch_cases = {
            case.name for arch in options.architectures for case in case_registry.cases_for_architecture(arch)
        }
    if options.formats:
        format_cases = {case.name for fmt in options.formats for case in case_registry.cases_for_format(fmt)}
    for case in case_registry.list_cases():
        if options.architectures and case.name not in arch_cases:
            continue
        if options.formats and case.name not in format_cases:
            continue
        if options.cases and not any(fnmatch.fnmatchcase(case.name, pattern) for pattern in options.cases):
            continue
        if options.tags and not set(options.tags) & set(case.tags):
            continue
        selected.append(case)
    return selected


def run_plan(
    plan: ExecutionPlan,
    options: RunOptions,
    *,
    report_format: str = "terminal",
    report_path: str | None = None,
    use_color: bool = True,
) -> int:
    """Execute the plan; returns process exit code (0 success, 1 failures)."""

    case_registry = build_registry(plan)
    cases = select_cases(case_registry, options)
    if options.list_only:
        for case in cases:
            click.echo(case.identifier())
        return 0
    if not cases:
        click.echo("No cases matched the provided filters.")
        return 1

    decompiler = plan.decompiler
    driver = build_driver(decompiler)
    resolver = SampleResolver(options.corpus or plan.corpus)
    runner = MatrixRunner(
        driver,
        resolver,
        scratch_root=plan.scratch,
        workers=options.workers or plan.workers,
        timeout=options.timeout if options.timeout is not None else decompiler.timeout,
        keep_scratch=options.keep_scratch or plan.keep_scratch,
    )
    manager = ReportManager(_build_reporters(report_format, report_path, use_color))
    logger.debug("running %d case(s) against corpus %s", len(cases), resolver.corpus_root)
    resolver.check_corpus()
    manager.start(plan, cases)
    report = runner.run(cases, on_result=manager.handle_result)
    manager.complete(report)
    return report.exit_code


def build_driver(config: DecompilerConfig) -> DecompilerDriver:
    """Return the registered driver the plan names, else a command driver."""

    if config.driver:
        return driver_manager.get_driver(config.driver)
    return CommandDriver(
        config.command,
        env=config.env,
        workdir=config.workdir,
        architectures=config.architectures,
    )


def _build_reporters(report_format: str, report_path: str | None, use_color: bool) -> Sequence[Reporter]:
    if report_format == "json":
        return [JsonReporter(path=report_path)]
    if report_format != "terminal":
        raise ValueError(f"Unsupported report format '{report_format}'")
    reporters: List[Reporter] = [TerminalReporter(use_color=use_color)]
    if report_path:
        reporters.append(JsonReporter(path=report_path))
    return reporters
