"""Fact extraction and tolerant comparison of decompiler output."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .decompilation import DecompilationResult, Failure, Success, Timeout
from .models import Architecture, ExpectedFacts, TestCase, parse_address

MISSING_FUNCTION = "missing-function"
CFG_MISSING = "cfg-missing"
CFG_BLOCK_COUNT = "cfg-block-count"
CFG_EDGE_COUNT = "cfg-edge-count"
CFG_UNREACHABLE = "cfg-unreachable-blocks"
CALLING_CONVENTION = "calling-convention"
MISSING_CALLING_CONVENTION = "missing-calling-convention"
INVALID_CALLING_CONVENTION = "invalid-calling-convention"
DECOMPILATION_FAILED = "decompilation-failed"
INVALID_OUTPUT = "invalid-output"
TIMEOUT = "timeout"

NON_DETERMINISTIC = "non-deterministic"

# Fact families a case may declare non-deterministic.
FACT_FAMILIES = {
    "functions": (MISSING_FUNCTION,),
    "cfg": (CFG_MISSING, CFG_BLOCK_COUNT, CFG_EDGE_COUNT, CFG_UNREACHABLE),
    "calling_conventions": (
        CALLING_CONVENTION,
        MISSING_CALLING_CONVENTION,
        INVALID_CALLING_CONVENTION,
    ),
}


@dataclass(frozen=True)
class Mismatch:
    """One unmet expectation."""

    kind: str
    subject: str
    expected: Any = None
    observed: Any = None
    tags: Tuple[str, ...] = tuple()
    # Decompiler stderr tail or reported diagnostics, when there are any.
    detail: str = ""

    def message(self) -> str:
        text = f"{self.kind}: {self.subject} expected={self.expected!r} observed={self.observed!r}"
        if self.tags:
            text += f" [{', '.join(self.tags)}]"
        return text


@dataclass(frozen=True)
class ObservedFunction:
    name: Optional[str]
    address: Optional[int]


@dataclass
class ObservedCfg:
    """Structural view of one function's recovered CFG."""

    block_count: int
    edge_count: int
    blocks: Optional[Tuple[str, ...]] = None
    edges: Optional[Tuple[Tuple[str, str], ...]] = None
    entry: Optional[str] = None

    def unreachable_blocks(self) -> Optional[Tuple[str, ...]]:
        """Blocks not reachable from the entry, or ``None`` when unknown."""

        if self.blocks is None or self.edges is None:
            return None
        if not self.blocks:
            return tuple()
        entry = self.entry if self.entry is not None else self.blocks[0]
        successors: Dict[str, List[str]] = {block: [] for block in self.blocks}
        for src, dst in self.edges:
            successors.setdefault(src, []).append(dst)
        seen = {entry}
        queue = deque([entry])
        while queue:
            node = queue.popleft()
            for nxt in successors.get(node, ()):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return tuple(block for block in self.blocks if block not in seen)


@dataclass
class ObservedFacts:
    """Facts extracted from a successful decompilation."""

    functions: List[ObservedFunction] = field(default_factory=list)
    cfg: Dict[str, ObservedCfg] = field(default_factory=dict)
    calling_conventions: Dict[str, str] = field(default_factory=dict)

    def function_names(self) -> set[str]:
        return {fn.name for fn in self.functions if fn.name is not None}

    def function_addresses(self) -> set[int]:
        return {fn.address for fn in self.functions if fn.address is not None}


def extract_facts(result: DecompilationResult) -> ObservedFacts:
    """Build :class:`ObservedFacts` from a successful result's artifacts."""

    if not isinstance(result, Success):
        raise ValueError(f"Cannot extract facts from {type(result).__name__} result")
    artifacts = result.artifacts or {}
    facts = ObservedFacts()
    for raw in artifacts.get("functions") or []:
        facts.functions.append(_parse_function(raw))
    cfg_raw = artifacts.get("cfg") or {}
    if isinstance(cfg_raw, Mapping):
        for name, entry in cfg_raw.items():
            if isinstance(entry, Mapping):
                facts.cfg[str(name)] = _parse_cfg(entry)
    conventions = artifacts.get("callingConventions", artifacts.get("calling_conventions")) or {}
    if isinstance(conventions, Mapping):
        facts.calling_conventions = {str(k): str(v) for k, v in conventions.items() if v is not None}
    return facts


def _parse_function(raw: Any) -> ObservedFunction:
    if isinstance(raw, str):
        return ObservedFunction(name=raw, address=None)
    if isinstance(raw, Mapping):
        name = raw.get("name")
        address = raw.get("address", raw.get("start"))
        try:
            parsed = parse_address(address) if address is not None else None
        except ValueError:
            parsed = None
        return ObservedFunction(name=str(name) if name is not None else None, address=parsed)
    return ObservedFunction(name=str(raw), address=None)


def _parse_cfg(entry: Mapping[str, Any]) -> ObservedCfg:
    blocks_raw = entry.get("blocks")
    edges_raw = entry.get("edges")
    blocks: Optional[Tuple[str, ...]] = None
    edges: Optional[Tuple[Tuple[str, str], ...]] = None
    if isinstance(blocks_raw, (list, tuple)):
        blocks = tuple(_block_id(block) for block in blocks_raw)
        block_count = len(blocks)
    else:
        block_count = int(blocks_raw or 0)
    if isinstance(edges_raw, (list, tuple)):
        edges = tuple(_edge(edge) for edge in edges_raw)
        edge_count = len(edges)
    else:
        edge_count = int(edges_raw or 0)
    entry_block = entry.get("entry")
    return ObservedCfg(
        block_count=block_count,
        edge_count=edge_count,
        blocks=blocks,
        edges=edges,
        entry=str(entry_block) if entry_block is not None else None,
    )


def _block_id(block: Any) -> str:
    if isinstance(block, Mapping):
        return str(block.get("id", block.get("address")))
    return str(block)


def _edge(edge: Any) -> Tuple[str, str]:
    if isinstance(edge, Mapping):
        return str(edge.get("from", edge.get("src"))), str(edge.get("to", edge.get("dst")))
    src, dst = edge
    return str(src), str(dst)


def compare_facts(
    observed: ObservedFacts,
    expected: ExpectedFacts,
    architecture: Architecture,
    nondeterministic: Sequence[str] = (),
) -> List[Mismatch]:
    """Return every divergence between ``observed`` and ``expected``.

    Function sets use subset semantics, CFGs are compared by shape, and
    calling conventions must match the architecture's enumeration exactly.
    """

    mismatches: List[Mismatch] = []
    mismatches.extend(_compare_functions(observed, expected))
    mismatches.extend(_compare_cfg(observed, expected))
    mismatches.extend(_compare_conventions(observed, expected, architecture))
    if nondeterministic:
        flaky = _flaky_kinds(nondeterministic)
        mismatches = [
            replace(m, tags=m.tags + (NON_DETERMINISTIC,))
            if m.kind in flaky
            else m
            for m in mismatches
        ]
    return mismatches


def _flaky_kinds(declared: Sequence[str]) -> set[str]:
    kinds: set[str] = set()
    for item in declared:
        kinds.update(FACT_FAMILIES.get(item, (item,)))
    return kinds


def _compare_functions(observed: ObservedFacts, expected: ExpectedFacts) -> List[Mismatch]:
    names = observed.function_names()
    addresses = observed.function_addresses()
    pairs = {(fn.name, fn.address) for fn in observed.functions}
    mismatches: List[Mismatch] = []
    for ref in expected.functions:
        if ref.name is not None and ref.address is not None:
            found = (ref.name, ref.address) in pairs
        elif ref.name is not None:
            found = ref.name in names
        else:
            found = ref.address in addresses
        if not found:
            mismatches.append(Mismatch(kind=MISSING_FUNCTION, subject=ref.label(), expected=ref.label()))
    return mismatches


def _compare_cfg(observed: ObservedFacts, expected: ExpectedFacts) -> List[Mismatch]:
    mismatches: List[Mismatch] = []
    for function, shape in expected.cfg.items():
        graph = observed.cfg.get(function)
        if graph is None:
            mismatches.append(Mismatch(kind=CFG_MISSING, subject=function, expected="cfg"))
            continue
        if shape.blocks is not None and graph.block_count != shape.blocks:
            mismatches.append(
                Mismatch(kind=CFG_BLOCK_COUNT, subject=function, expected=shape.blocks, observed=graph.block_count)
            )
        if shape.edges is not None and graph.edge_count != shape.edges:
            mismatches.append(
                Mismatch(kind=CFG_EDGE_COUNT, subject=function, expected=shape.edges, observed=graph.edge_count)
            )
        if shape.all_reachable:
            unreachable = graph.unreachable_blocks()
            if unreachable is None:
                mismatches.append(
                    Mismatch(kind=CFG_UNREACHABLE, subject=function, expected=[], observed="unknown")
                )
            elif unreachable:
                mismatches.append(
                    Mismatch(kind=CFG_UNREACHABLE, subject=function, expected=[], observed=list(unreachable))
                )
    return mismatches


def _compare_conventions(
    observed: ObservedFacts, expected: ExpectedFacts, architecture: Architecture
) -> List[Mismatch]:
    info = architecture.info
    mismatches: List[Mismatch] = []
    for function, convention in sorted(observed.calling_conventions.items()):
        if not info.accepts_convention(convention):
            mismatches.append(
                Mismatch(
                    kind=INVALID_CALLING_CONVENTION,
                    subject=function,
                    expected=list(info.calling_conventions),
                    observed=convention,
                )
            )
    for function, want in expected.calling_conventions.items():
        got = observed.calling_conventions.get(function)
        if got is None:
            mismatches.append(Mismatch(kind=MISSING_CALLING_CONVENTION, subject=function, expected=want))
            continue
        if info.normalize_convention(got) != info.normalize_convention(want):
            mismatches.append(Mismatch(kind=CALLING_CONVENTION, subject=function, expected=want, observed=got))
    return mismatches


def evaluate(case: TestCase, result: DecompilationResult) -> List[Mismatch]:
    """Turn a decompilation result into the full list of mismatches for ``case``."""

    if isinstance(result, Timeout):
        return [
            Mismatch(
                kind=TIMEOUT,
                subject=case.name,
                expected=f"<= {result.timeout_s:g}s",
                observed="killed",
                detail=result.diagnostic,
            )
        ]
    if isinstance(result, Failure):
        return [
            Mismatch(
                kind=DECOMPILATION_FAILED,
                subject=case.name,
                expected="success",
                observed=result.error,
                detail=result.diagnostic,
            )
        ]
    if case.expected is None:
        return []
    try:
        observed = extract_facts(result)
    except (TypeError, ValueError) as exc:
        return [
            Mismatch(
                kind=INVALID_OUTPUT,
                subject=case.name,
                expected="well-formed artifacts",
                observed=str(exc),
                detail=result.diagnostics,
            )
        ]
    return compare_facts(observed, case.expected, case.architecture, case.nondeterministic)
