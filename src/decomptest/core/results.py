"""Result data structures produced by the matrix runner."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .comparator import Mismatch
from .models import TestCase

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"
ERRORED = "errored"

STATUSES = (PASSED, FAILED, SKIPPED, ERRORED)


@dataclass
class CaseResult:
    """Outcome of executing a single test case."""

    case: TestCase
    status: str
    duration_s: float = 0.0
    mismatches: List[Mismatch] = field(default_factory=list)
    reason: Optional[str] = None
    error: Optional[str] = None
    sample_path: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    @property
    def is_problem(self) -> bool:
        return self.status in {FAILED, ERRORED}


def _empty_counts() -> Dict[str, int]:
    return {status: 0 for status in STATUSES}


class RunReport:
    """Aggregates case outcomes; ``record`` is safe to call from worker threads."""

    def __init__(self, cases: Sequence[TestCase] = ()) -> None:
        self._order = {case.name: index for index, case in enumerate(cases)}
        self._results: List[CaseResult] = []
        self._lock = threading.Lock()

    def record(self, result: CaseResult) -> None:
        with self._lock:
            if any(existing.case.name == result.case.name for existing in self._results):
                raise RuntimeError(f"Outcome for case '{result.case.name}' already recorded")
            self._results.append(result)

    @property
    def results(self) -> List[CaseResult]:
        with self._lock:
            snapshot = list(self._results)
        return sorted(snapshot, key=lambda r: self._order.get(r.case.name, len(self._order)))

    def totals(self) -> Dict[str, int]:
        counts = _empty_counts()
        for result in self.results:
            counts[result.status] += 1
        return counts

    def by_architecture(self) -> Dict[str, Dict[str, int]]:
        return self._group(lambda r: r.case.architecture.info.label)

    def by_format(self) -> Dict[str, Dict[str, int]]:
        return self._group(lambda r: r.case.object_format.value.upper())

    def _group(self, key) -> Dict[str, Dict[str, int]]:
        groups: Dict[str, Dict[str, int]] = {}
        for result in self.results:
            groups.setdefault(key(result), _empty_counts())[result.status] += 1
        return groups

    @property
    def exit_code(self) -> int:
        return 1 if any(result.is_problem for result in self.results) else 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
