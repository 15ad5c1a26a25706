import pytest

from decomptest.core import (
    Architecture,
    ExpectedFacts,
    Failure,
    ObjectFormat,
    SampleRef,
    Success,
    TestCase,
    Timeout,
    compare_facts,
    evaluate,
    extract_facts,
)
from decomptest.core.comparator import (
    CALLING_CONVENTION,
    CFG_BLOCK_COUNT,
    CFG_EDGE_COUNT,
    CFG_MISSING,
    CFG_UNREACHABLE,
    DECOMPILATION_FAILED,
    INVALID_CALLING_CONVENTION,
    INVALID_OUTPUT,
    MISSING_CALLING_CONVENTION,
    MISSING_FUNCTION,
    NON_DETERMINISTIC,
    TIMEOUT,
)


def _case(expected=None, arch=Architecture.X86, nondeterministic=()) -> TestCase:
    return TestCase(
        name="simple_x86",
        architecture=arch,
        object_format=ObjectFormat.ELF,
        sample=SampleRef(path="x86/simple.elf"),
        expected=ExpectedFacts.from_mapping(expected),
        nondeterministic=nondeterministic,
    )


def _success(**artifacts) -> Success:
    return Success(artifacts=artifacts)


def test_superset_of_functions_passes() -> None:
    case = _case({"functions": ["main"]})
    assert evaluate(case, _success(functions=["main", "helper"])) == []


def test_missing_expected_function_fails() -> None:
    case = _case({"functions": ["main"]})
    mismatches = evaluate(case, _success(functions=["helper"]))
    assert len(mismatches) == 1
    assert mismatches[0].kind == MISSING_FUNCTION
    assert mismatches[0].expected == "main"


def test_function_set_comparison_is_monotonic() -> None:
    expected = ExpectedFacts.from_mapping({"functions": ["main", {"address": "0x1000"}]})
    base = ["main", {"name": "sub_1000", "address": "0x1000"}]
    assert compare_facts(extract_facts(_success(functions=base)), expected, Architecture.X86) == []
    for extra in (["helper"], [{"name": "init", "address": 16}], ["a", "b", "c"]):
        observed = extract_facts(_success(functions=base + extra))
        assert compare_facts(observed, expected, Architecture.X86) == []


def test_function_matched_by_name_and_address_together() -> None:
    expected = ExpectedFacts.from_mapping({"functions": [{"name": "main", "address": "0x401000"}]})
    observed = extract_facts(
        _success(functions=[{"name": "main", "address": "0x401010"}, {"name": "x", "address": "0x401000"}])
    )
    mismatches = compare_facts(observed, expected, Architecture.X86)
    assert [m.kind for m in mismatches] == [MISSING_FUNCTION]
    assert mismatches[0].subject == "main@0x401000"


def test_cfg_shape_comparison_reports_every_divergence() -> None:
    expected = {"cfg": {"main": {"blocks": 4, "edges": 4, "all_reachable": True}, "helper": {"blocks": 1}}}
    cfg = {
        "main": {
            "entry": "b0",
            "blocks": ["b0", "b1", "b2", "b3", "dead"],
            "edges": [["b0", "b1"], ["b0", "b2"], ["b1", "b3"]],
        }
    }
    mismatches = evaluate(_case(expected), _success(cfg=cfg))
    by_kind = {m.kind: m for m in mismatches}
    assert set(by_kind) == {CFG_BLOCK_COUNT, CFG_EDGE_COUNT, CFG_UNREACHABLE, CFG_MISSING}
    assert by_kind[CFG_BLOCK_COUNT].observed == 5
    assert by_kind[CFG_EDGE_COUNT].observed == 3
    assert by_kind[CFG_UNREACHABLE].observed == ["dead"]
    assert by_kind[CFG_MISSING].subject == "helper"


def test_cfg_accepts_counts_and_edge_mappings() -> None:
    expected = {"cfg": {"main": {"blocks": 2, "edges": 1, "all_reachable": True}}}
    cfg = {"main": {"blocks": [{"id": 1}, {"id": 2}], "edges": [{"from": 1, "to": 2}]}}
    assert evaluate(_case(expected), _success(cfg=cfg)) == []


def test_cfg_reachability_unknown_when_only_counts() -> None:
    expected = {"cfg": {"main": {"blocks": 2, "all_reachable": True}}}
    mismatches = evaluate(_case(expected), _success(cfg={"main": {"blocks": 2, "edges": 1}}))
    assert [(m.kind, m.observed) for m in mismatches] == [(CFG_UNREACHABLE, "unknown")]


def test_calling_convention_exact_match() -> None:
    case = _case(
        {"calling_conventions": {"f": "stdcall", "g": "cdecl", "h": "fastcall"}},
    )
    mismatches = evaluate(
        case,
        _success(callingConventions={"f": "__stdcall", "g": "fastcall"}),
    )
    kinds = sorted((m.kind, m.subject) for m in mismatches)
    assert kinds == [(CALLING_CONVENTION, "g"), (MISSING_CALLING_CONVENTION, "h")]


@pytest.mark.parametrize("arch", list(Architecture))
def test_convention_outside_architecture_set_fails(arch) -> None:
    case = _case({"functions": ["main"]}, arch=arch)
    mismatches = evaluate(case, _success(functions=["main"], calling_conventions={"main": "pascal"}))
    assert [m.kind for m in mismatches] == [INVALID_CALLING_CONVENTION]
    assert mismatches[0].expected == list(arch.info.calling_conventions)


def test_additive_artifact_fields_are_ignored() -> None:
    case = _case({"functions": ["main"]})
    result = _success(functions=[{"name": "main", "size": 12, "signature": "int main()"}], strings=["hi"])
    assert evaluate(case, result) == []


def test_nondeterministic_facts_are_tagged() -> None:
    case = _case({"functions": ["main"], "cfg": {"main": {"blocks": 3}}}, nondeterministic=("cfg",))
    mismatches = evaluate(case, _success(functions=[], cfg={"main": {"blocks": 4}}))
    tags = {m.kind: m.tags for m in mismatches}
    assert tags[MISSING_FUNCTION] == ()
    assert tags[CFG_BLOCK_COUNT] == (NON_DETERMINISTIC,)
    assert NON_DETERMINISTIC in mismatches[-1].message()


def test_timeout_and_failure_become_distinguished_mismatches() -> None:
    case = _case({"functions": ["main"]})
    timeout = evaluate(case, Timeout(timeout_s=2.0))
    assert [m.kind for m in timeout] == [TIMEOUT]
    failure = evaluate(case, Failure(error="decompiler exited with status 139", exit_code=139))
    assert [m.kind for m in failure] == [DECOMPILATION_FAILED]
    assert "139" in failure[0].observed


def test_missing_expected_facts_only_requires_success() -> None:
    case = _case(None)
    assert evaluate(case, _success()) == []
    assert evaluate(case, Failure(error="boom")) != []


def test_extract_facts_requires_success() -> None:
    with pytest.raises(ValueError):
        extract_facts(Timeout(timeout_s=1.0))


@pytest.mark.parametrize(
    "artifacts",
    [
        {"functions": 5},
        {"cfg": {"main": {"blocks": "many"}}},
        {"cfg": {"main": {"edges": [[1, 2, 3]]}}},
        {"cfg": {"main": {"edges": [7]}}},
    ],
)
def test_malformed_artifacts_are_invalid_output(artifacts) -> None:
    case = _case({"functions": ["main"]})
    mismatches = evaluate(case, Success(artifacts=artifacts, diagnostics="lifter 2.1"))
    assert [m.kind for m in mismatches] == [INVALID_OUTPUT]
    assert mismatches[0].subject == "simple_x86"
    assert mismatches[0].detail == "lifter 2.1"


def test_failure_and_timeout_keep_decompiler_diagnostics() -> None:
    case = _case({"functions": ["main"]})
    (crash,) = evaluate(case, Failure(error="decompiler exited with status 139", diagnostic="segmentation fault"))
    assert crash.detail == "segmentation fault"
    (hang,) = evaluate(case, Timeout(timeout_s=1.0, diagnostic="still lifting block 0x40"))
    assert hang.detail == "still lifting block 0x40"
    assert evaluate(case, _success(functions=["helper"]))[0].detail == ""
