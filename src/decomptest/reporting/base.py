"""Reporter interface definitions."""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from decomptest.core import CaseResult, RunReport, TestCase

if TYPE_CHECKING:
    from decomptest.plan.models import ExecutionPlan


class Reporter:
    """Interface for output renderers."""

    def on_start(self, plan: ExecutionPlan, cases: Sequence[TestCase]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:  # pragma: no cover
        raise NotImplementedError

    def on_complete(self, report: RunReport) -> None:  # pragma: no cover
        raise NotImplementedError


class ReportManager:
    """Dispatches lifecycle callbacks to multiple reporters."""

    def __init__(self, reporters: Sequence[Reporter]) -> None:
        self._reporters = list(reporters)

    def start(self, plan: ExecutionPlan, cases: Sequence[TestCase]) -> None:
        for reporter in self._reporters:
            reporter.on_start(plan, cases)

    def handle_result(self, result: CaseResult, index: int, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_case_result(result, index, total)

    def complete(self, report: RunReport) -> None:
        for reporter in self._reporters:
            reporter.on_complete(report)
