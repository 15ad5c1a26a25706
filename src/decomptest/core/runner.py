"""Matrix runner orchestrating sample resolution, decompilation, and comparison."""
from __future__ import annotations

import enum
import hashlib
import logging
import re
import shutil
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from .comparator import evaluate
from .models import TestCase
from .results import ERRORED, FAILED, PASSED, SKIPPED, CaseResult, RunReport
from .samples import SampleResolver

if TYPE_CHECKING:
    from decomptest.backends.base import DecompilerDriver

logger = logging.getLogger(__name__)

KEEP_SCRATCH_POLICIES = ("always", "on-failure", "never")


class CaseState(str, enum.Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    SKIPPED = "skipped"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({CaseState.SKIPPED, CaseState.PASSED, CaseState.FAILED, CaseState.ERRORED})

TRANSITIONS = {
    CaseState.PENDING: {CaseState.RESOLVING},
    CaseState.RESOLVING: {CaseState.SKIPPED, CaseState.RUNNING, CaseState.ERRORED},
    CaseState.RUNNING: {CaseState.PASSED, CaseState.FAILED, CaseState.ERRORED},
}


class CaseProgress:
    """Tracks one case through the runner's state machine."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = CaseState.PENDING

    def advance(self, new_state: CaseState) -> None:
        allowed = TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise RuntimeError(f"Case '{self.name}': illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


ResultCallback = Callable[[CaseResult, int, int], None]


class MatrixRunner:
    """Executes every declared case once and aggregates a :class:`RunReport`.

    Cases never retry. Any exception raised while handling a case becomes an
    ``errored`` outcome for that case alone; only a missing corpus aborts the
    run, and it does so before the first case starts.
    """

    def __init__(
        self,
        driver: "DecompilerDriver",
        resolver: SampleResolver,
        *,
        scratch_root: Path,
        workers: int = 1,
        timeout: Optional[float] = None,
        keep_scratch: str = "on-failure",
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if keep_scratch not in KEEP_SCRATCH_POLICIES:
            raise ValueError(f"keep_scratch must be one of {', '.join(KEEP_SCRATCH_POLICIES)}")
        self._driver = driver
        self._resolver = resolver
        self._scratch_root = Path(scratch_root)
        self._workers = workers
        self._timeout = timeout
        self._keep_scratch = keep_scratch
        self._emit_lock = threading.Lock()

    def run(self, cases: Sequence[TestCase], *, on_result: Optional[ResultCallback] = None) -> RunReport:
        self._resolver.check_corpus()
        report = RunReport(cases)
        total = len(cases)

        def emit(result: CaseResult) -> None:
            with self._emit_lock:
                report.record(result)
                if on_result:
                    on_result(result, len(report), total)

        if self._workers == 1 or total <= 1:
            for case in cases:
                emit(self.execute_case(case))
            return report

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="decomptest") as pool:
            futures = [pool.submit(self.execute_case, case) for case in cases]
            for future in as_completed(futures):
                emit(future.result())
        return report

    def execute_case(self, case: TestCase) -> CaseResult:
        progress = CaseProgress(case.name)
        start = time.perf_counter()
        sample_path: Optional[str] = None
        scratch: Optional[Path] = None
        try:
            progress.advance(CaseState.RESOLVING)
            if not self._driver.supports(case):
                progress.advance(CaseState.SKIPPED)
                return CaseResult(
                    case=case,
                    status=SKIPPED,
                    duration_s=time.perf_counter() - start,
                    reason=f"driver '{self._driver.name}' does not support {case.architecture.value}/"
                    f"{case.object_format.value}",
                )
            sample = self._resolver.resolve(case)
            sample_path = str(sample.path)
            if not sample.present:
                progress.advance(CaseState.SKIPPED)
                return CaseResult(
                    case=case,
                    status=SKIPPED,
                    duration_s=time.perf_counter() - start,
                    reason=sample.reason,
                    sample_path=sample_path,
                )
            progress.advance(CaseState.RUNNING)
            scratch = self._prepare_scratch(case)
            timeout = case.effective_timeout(self._timeout)
            result = self._driver.run(case, sample, scratch, timeout)
            mismatches = evaluate(case, result)
            status = PASSED if not mismatches else FAILED
            progress.advance(CaseState(status))
            self._retain_scratch(scratch, status)
            logger.debug("case %s -> %s (%d mismatches)", case.name, status, len(mismatches))
            return CaseResult(
                case=case,
                status=status,
                duration_s=time.perf_counter() - start,
                mismatches=mismatches,
                sample_path=sample_path,
            )
        except Exception as exc:
            logger.debug("case %s errored", case.name, exc_info=True)
            if not progress.finished:
                progress.advance(CaseState.ERRORED)
            if scratch is not None:
                self._retain_scratch(scratch, ERRORED)
            return CaseResult(
                case=case,
                status=ERRORED,
                duration_s=time.perf_counter() - start,
                error=f"{type(exc).__name__}: {exc}",
                sample_path=sample_path,
            )

    def scratch_dir(self, case: TestCase) -> Path:
        return self._scratch_root / _safe_name(case.name)

    def _prepare_scratch(self, case: TestCase) -> Path:
        path = self.scratch_dir(case)
        if path.exists():
            shutil.rmtree(path)
        return path

    def _retain_scratch(self, path: Path, status: str) -> None:
        if self._keep_scratch == "always":
            return
        if self._keep_scratch == "on-failure" and status != PASSED:
            return
        shutil.rmtree(path, ignore_errors=True)


def _safe_name(name: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_.-]", "_", name)
    if safe == name and name not in {".", ".."}:
        return name
    # "~" never survives the substitution, so rewritten names cannot collide with verbatim ones.
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:10]
    return f"{safe or 'case'}~{digest}"
