"""Terminal reporter rendering progress and summaries."""
from __future__ import annotations

import time
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

import click
from colorama import Fore, Style, init as colorama_init

from decomptest.core import CaseResult, RunReport, TestCase
from decomptest.core.results import STATUSES

from .base import Reporter

if TYPE_CHECKING:
    from decomptest.plan.models import ExecutionPlan


STATUS_COLORS = {
    "passed": Fore.GREEN,
    "failed": Fore.RED,
    "errored": Fore.MAGENTA,
    "skipped": Fore.YELLOW,
}

STATUS_LABELS = {
    "passed": "PASS",
    "failed": "FAIL",
    "errored": "ERROR",
    "skipped": "SKIP",
}


class TerminalReporter(Reporter):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True) -> None:
        self._use_color = use_color
        self._start_time = 0.0
        self._problems: List[Tuple[int, CaseResult]] = []
        if use_color:
            colorama_init()

    def on_start(self, plan: "ExecutionPlan", cases: Sequence[TestCase]) -> None:
        self._start_time = time.perf_counter()
        self._problems.clear()
        architectures = sorted({case.architecture.info.label for case in cases})
        click.echo(
            self._paint(
                f"Starting run: {len(cases)} case(s) across {', '.join(architectures)} "
                f"corpus={plan.corpus}",
                Fore.CYAN,
            )
        )

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        ms = result.duration_s * 1000
        label = self._status(result.status)
        click.echo(f"[{index}/{total}] {label} {result.case.identifier()} ({ms:.1f} ms)")
        if result.status == "skipped" and result.reason:
            click.echo(f"    reason: {result.reason}")
        if result.is_problem:
            self._problems.append((index, result))
            self._print_details(result)

    def on_complete(self, report: RunReport) -> None:
        duration = time.perf_counter() - self._start_time
        totals = report.totals()
        color = Fore.GREEN if report.exit_code == 0 else Fore.RED
        counts = " ".join(f"{status}={totals[status]}" for status in STATUSES)
        click.echo(
            self._paint(f"Summary: total={len(report)} {counts} duration={duration:.2f}s", color)
        )
        self._print_breakdown("By architecture", report.by_architecture())
        self._print_breakdown("By format", report.by_format())
        skipped = [result for result in report.results if result.status == "skipped"]
        if skipped:
            click.echo(self._paint(f"Coverage gaps ({len(skipped)} skipped):", Fore.YELLOW))
            for result in skipped:
                click.echo(f"  {result.case.identifier()}: {result.reason}")
        if self._problems:
            click.echo(self._paint("Failure details:", Fore.RED))
            for index, result in self._problems:
                click.echo(f"  [{index}] {result.case.identifier()} -> {result.status}")
                self._print_details(result, indent="    ")

    def _print_breakdown(self, title: str, groups: Dict[str, Dict[str, int]]) -> None:
        if not groups:
            return
        click.echo(f"{title}:")
        width = max(len(name) for name in groups)
        for name in sorted(groups):
            counts = groups[name]
            cells = " ".join(f"{status}={counts[status]}" for status in STATUSES)
            click.echo(f"  {name:<{width}}  {cells}")

    def _print_details(self, result: CaseResult, *, indent: str = "    ") -> None:
        if result.error:
            click.echo(f"{indent}error: {result.error}")
            return
        for mismatch in result.mismatches:
            click.echo(f"{indent}{mismatch.message()}")
            for line in mismatch.detail.splitlines():
                click.echo(f"{indent}  | {line}")

    def _status(self, status: str) -> str:
        label = f"{STATUS_LABELS.get(status, status.upper()):<5}"
        return self._paint(label, STATUS_COLORS.get(status, ""))

    def _paint(self, text: str, color: str) -> str:
        if not self._use_color or not color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"
