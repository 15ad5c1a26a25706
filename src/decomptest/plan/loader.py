"""YAML loader and validation for plan files."""
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from jsonschema import Draft7Validator

from decomptest.core import (
    Architecture,
    ExpectedFacts,
    ObjectFormat,
    SampleRef,
    TestCase,
)
from decomptest.core.runner import KEEP_SCRATCH_POLICIES
from decomptest.errors import PlanError

from .models import DecompilerConfig, ExecutionPlan

DEFAULT_SCRATCH = ".decomptest/scratch"


def load_plan(path: str) -> ExecutionPlan:
    """Load and validate a plan file."""
    plan_path = Path(path).expanduser().resolve()
    try:
        raw = yaml.safe_load(plan_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise PlanError(f"Plan file is not valid YAML: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise PlanError("Plan file must contain a mapping at the top level")
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise PlanError(f"Plan schema validation failed: {messages}")
    base = plan_path.parent
    corpus = _resolve_dir(raw.get("corpus", "."), base)
    scratch = _resolve_dir(raw.get("scratch", DEFAULT_SCRATCH), base)
    decompiler = _parse_decompiler(raw["decompiler"], base)
    cases: List[TestCase] = []
    for index, entry in enumerate(raw.get("cases") or []):
        cases.append(_parse_case(entry, f"cases/{index}"))
    for index, entry in enumerate(raw.get("matrix") or []):
        cases.extend(_expand_matrix(entry, f"matrix/{index}"))
    include_builtins = bool(raw.get("include_builtins", False))
    if not cases and not include_builtins:
        raise PlanError("Plan declares no cases (add 'cases', 'matrix', or include_builtins: true)")
    _check_unique(cases)
    return ExecutionPlan(
        corpus=corpus,
        scratch=scratch,
        decompiler=decompiler,
        cases=tuple(cases),
        workers=int(raw.get("workers", 1)),
        keep_scratch=str(raw.get("keep_scratch", "on-failure")),
        include_builtins=include_builtins,
        description=str(raw.get("description", "")),
    )


def _resolve_dir(value: Any, base: Path) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def _parse_decompiler(raw: Mapping[str, Any], base: Path) -> DecompilerConfig:
    driver = raw.get("driver")
    if driver is not None and raw.get("command") is not None:
        raise PlanError("decompiler: set either 'command' or 'driver', not both")
    command = _normalize_command(raw.get("command")) if driver is None else tuple()
    env = {str(k): str(v) for k, v in (raw.get("env") or {}).items()}
    workdir_raw = raw.get("workdir")
    workdir = _resolve_dir(workdir_raw, base) if workdir_raw else None
    timeout = raw.get("timeout")
    try:
        architectures = tuple(Architecture.parse(item).value for item in raw.get("architectures") or [])
    except ValueError as exc:
        raise PlanError(f"decompiler: {exc}") from exc
    return DecompilerConfig(
        command=command,
        env=env,
        workdir=workdir,
        timeout=float(timeout) if timeout is not None else None,
        driver=str(driver) if driver is not None else None,
        architectures=architectures,
    )


def _normalize_command(raw: Any) -> tuple[str, ...]:
    if raw is None:
        raise PlanError("decompiler.command is required")
    if isinstance(raw, (str, Path)):
        argv = tuple(shlex.split(str(raw)))
    elif isinstance(raw, Mapping):
        executable = raw.get("binary") or raw.get("executable")
        if not executable:
            raise PlanError("decompiler.command mapping requires 'binary' or 'executable'")
        args = raw.get("args", [])
        if isinstance(args, (str, Path)):
            args_list = shlex.split(str(args))
        elif isinstance(args, list):
            args_list = [str(part) for part in args]
        else:
            raise PlanError("decompiler.command args must be list or string")
        argv = tuple([str(executable)] + args_list)
    elif isinstance(raw, (list, tuple)):
        argv = tuple(str(part) for part in raw)
    else:
        raise PlanError("decompiler.command must be string, list, or mapping")
    if not argv:
        raise PlanError("decompiler.command cannot be empty")
    return argv


def _parse_case(entry: Mapping[str, Any], where: str) -> TestCase:
    name = _require_str(entry, "name", where)
    try:
        arch = Architecture.parse(_require_str(entry, "arch", where))
        fmt = ObjectFormat.parse(entry.get("format", "elf"))
        expected = ExpectedFacts.from_mapping(entry.get("expected"))
    except ValueError as exc:
        raise PlanError(f"{where}: {exc}") from exc
    return TestCase(
        name=name,
        architecture=arch,
        object_format=fmt,
        sample=_parse_sample(entry.get("sample"), where),
        expected=expected,
        timeout=_optional_float(entry.get("timeout")),
        tags=tuple(str(tag) for tag in entry.get("tags", []) or []),
        nondeterministic=tuple(str(kind) for kind in entry.get("nondeterministic", []) or []),
        description=str(entry.get("description", "")),
    )


def _parse_sample(raw: Any, where: str) -> SampleRef:
    if isinstance(raw, str) and raw.strip():
        return SampleRef(path=raw.strip())
    if isinstance(raw, Mapping) and raw.get("path"):
        digest = raw.get("sha256")
        return SampleRef(path=str(raw["path"]), sha256=str(digest) if digest else None)
    raise PlanError(f"{where}: sample must be a path or a mapping with 'path'")


def _expand_matrix(entry: Mapping[str, Any], where: str) -> List[TestCase]:
    """Expand one matrix entry into a case per (architecture, format)."""

    name = _require_str(entry, "name", where)
    template = entry.get("sample")
    if not isinstance(template, str) or not template.strip():
        raise PlanError(f"{where}: matrix sample must be a path template string")
    try:
        architectures = [Architecture.parse(item) for item in entry.get("architectures") or []]
        formats = [ObjectFormat.parse(item) for item in entry.get("formats") or ["elf"]]
        # An exclude without a format drops every format of that architecture.
        excluded = {
            (
                Architecture.parse(item["arch"]),
                ObjectFormat.parse(item["format"]) if item.get("format") else None,
            )
            for item in entry.get("exclude", []) or []
        }
    except ValueError as exc:
        raise PlanError(f"{where}: {exc}") from exc
    if not architectures:
        raise PlanError(f"{where}: matrix architectures cannot be empty")
    cases: List[TestCase] = []
    for arch in architectures:
        for fmt in formats:
            if (arch, fmt) in excluded or (arch, None) in excluded:
                continue
            tokens = {"arch": arch.value, "format": fmt.value, "name": name}
            case_entry: Dict[str, Any] = dict(entry)
            case_entry.update(
                name=f"{name}_{arch.value}_{fmt.value}",
                arch=arch.value,
                format=fmt.value,
                sample=_render(template, tokens, where),
            )
            cases.append(_parse_case(case_entry, where))
    return cases


def _render(template: str, tokens: Mapping[str, str], where: str) -> str:
    try:
        return template.format(**tokens)
    except (KeyError, IndexError) as exc:
        raise PlanError(f"{where}: unknown token {exc} in sample template '{template}'") from exc


def _require_str(raw: Mapping[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise PlanError(f"{where}: missing required string field '{key}'")
    return value.strip()


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _check_unique(cases: Sequence[TestCase]) -> None:
    seen: set[str] = set()
    for case in cases:
        if case.name in seen:
            raise PlanError(f"Duplicate case name '{case.name}'")
        seen.add(case.name)


_EXPECTED_SCHEMA = {
    "type": "object",
    "properties": {
        "functions": {"type": "array", "items": {"type": ["string", "integer", "object"]}},
        "cfg": {"type": "object"},
        "calling_conventions": {"type": "object"},
    },
}

_CASE_PROPERTIES = {
    "name": {"type": "string", "minLength": 1},
    "description": {"type": "string"},
    "sample": {"type": ["string", "object"]},
    "expected": _EXPECTED_SCHEMA,
    "timeout": {"type": "number", "exclusiveMinimum": 0},
    "tags": {"type": "array", "items": {"type": "string"}},
    "nondeterministic": {"type": "array", "items": {"type": "string"}},
}

PLAN_SCHEMA = {
    "type": "object",
    "required": ["decompiler"],
    "properties": {
        "description": {"type": "string"},
        "corpus": {"type": "string"},
        "scratch": {"type": "string"},
        "workers": {"type": "integer", "minimum": 1},
        "keep_scratch": {"enum": list(KEEP_SCRATCH_POLICIES)},
        "include_builtins": {"type": "boolean"},
        "decompiler": {
            "type": "object",
            "anyOf": [{"required": ["command"]}, {"required": ["driver"]}],
            "properties": {
                "command": {"type": ["string", "array", "object"]},
                "driver": {"type": "string", "minLength": 1},
                "architectures": {"type": "array", "items": {"type": "string"}},
                "env": {"type": "object"},
                "workdir": {"type": "string"},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
            },
        },
        "cases": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "arch", "sample"],
                "properties": dict(_CASE_PROPERTIES, arch={"type": "string"}, format={"type": "string"}),
            },
        },
        "matrix": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "architectures", "sample"],
                "properties": dict(
                    _CASE_PROPERTIES,
                    architectures={"type": "array", "minItems": 1, "items": {"type": "string"}},
                    formats={"type": "array", "minItems": 1, "items": {"type": "string"}},
                    exclude={"type": "array", "items": {"type": "object", "required": ["arch"]}},
                ),
            },
        },
    },
}
_validator = Draft7Validator(PLAN_SCHEMA)
