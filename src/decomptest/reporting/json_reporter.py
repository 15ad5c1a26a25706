"""JSON reporter emitting structured execution results."""
from __future__ import annotations

import datetime as dt
import json
import pathlib
import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

import click
from jsonschema import validate

from decomptest.core import CaseResult, Mismatch, RunReport, TestCase

from .base import Reporter
from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION

if TYPE_CHECKING:
    from decomptest.plan.models import ExecutionPlan


class JsonReporter(Reporter):
    """Writes the run report as JSON validated against the schema.

    With no path the document goes to stdout.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = pathlib.Path(path) if path else None
        self._start_time = 0.0

    def on_start(self, plan: "ExecutionPlan", cases: Sequence[TestCase]) -> None:
        self._start_time = time.perf_counter()

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        return None

    def on_complete(self, report: RunReport) -> None:
        payload = build_payload(report, time.perf_counter() - self._start_time)
        text = json.dumps(payload, indent=2)
        if self._path is None:
            click.echo(text)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise RuntimeError(f"Failed to write JSON report to {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}", err=True)


def build_payload(report: RunReport, duration: float = 0.0) -> Dict[str, Any]:
    results = report.results
    payload = {
        "schema_version": SCHEMA_VERSION,
        "generated_at": dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "summary": {
            "total": len(results),
            "totals": report.totals(),
            "by_architecture": report.by_architecture(),
            "by_format": report.by_format(),
            "exit_code": report.exit_code,
            "duration_s": duration,
        },
        "cases": [_case_to_dict(result) for result in results],
    }
    validate(instance=payload, schema=JSON_SCHEMA_V1)
    return payload


def _case_to_dict(result: CaseResult) -> Dict[str, Any]:
    case = result.case
    record: Dict[str, Any] = {
        "name": case.name,
        "architecture": case.architecture.info.label,
        "format": case.object_format.value.upper(),
        "status": result.status,
        "duration_ms": result.duration_s * 1000,
        "sample": result.sample_path,
        "tags": list(case.tags),
        "mismatches": [_mismatch_to_dict(mismatch) for mismatch in result.mismatches],
    }
    if result.reason:
        record["reason"] = result.reason
    if result.error:
        record["error"] = result.error
    return record


def _mismatch_to_dict(mismatch: Mismatch) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "kind": mismatch.kind,
        "subject": mismatch.subject,
        "expected": _jsonify(mismatch.expected),
        "observed": _jsonify(mismatch.observed),
        "tags": list(mismatch.tags),
    }
    if mismatch.detail:
        record["detail"] = mismatch.detail
    return record


def _jsonify(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _jsonify(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonify(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
