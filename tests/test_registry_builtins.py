import pytest

from decomptest.core import Architecture, ObjectFormat, SampleRef, TestCase
from decomptest.registry import CaseRegistry, registry
from decomptest.registry.builtins import BUILTIN_CASES


def _case(name: str, arch: Architecture, fmt: ObjectFormat = ObjectFormat.ELF) -> TestCase:
    return TestCase(name=name, architecture=arch, object_format=fmt, sample=SampleRef(path=f"{name}.bin"))


def test_builtin_cases_cover_every_architecture() -> None:
    covered = {case.architecture for case in BUILTIN_CASES}
    assert covered == set(Architecture)
    assert {case.object_format for case in BUILTIN_CASES} == {ObjectFormat.ELF, ObjectFormat.PE}


def test_builtin_conventions_belong_to_their_architecture() -> None:
    for case in BUILTIN_CASES:
        if case.expected is None:
            continue
        for convention in case.expected.calling_conventions.values():
            assert case.architecture.info.accepts_convention(convention), case.name


def test_global_registry_contains_builtins() -> None:
    names = set(registry.names())
    assert {"simple_x86_elf", "simple_arm_elf", "calling_conventions_x86"}.issubset(names)


def test_registry_preserves_declaration_order_and_filters() -> None:
    reg = CaseRegistry(
        [
            _case("a", Architecture.ARM),
            _case("b", Architecture.X86, ObjectFormat.PE),
            _case("c", Architecture.ARM, ObjectFormat.PE),
        ]
    )
    assert [case.name for case in reg.list_cases()] == ["a", "b", "c"]
    assert [case.name for case in reg.cases_for_architecture("ARM")] == ["a", "c"]
    assert [case.name for case in reg.cases_for_format(ObjectFormat.PE)] == ["b", "c"]
    assert reg.get("b").architecture is Architecture.X86
    assert "c" in reg
    assert len(reg) == 3


def test_registry_rejects_duplicates_and_mutation_after_freeze() -> None:
    reg = CaseRegistry([_case("a", Architecture.ARM)])
    with pytest.raises(ValueError, match="already registered"):
        reg.register(_case("a", Architecture.X86))
    reg.freeze()
    assert reg.frozen
    with pytest.raises(RuntimeError, match="frozen"):
        reg.register(_case("b", Architecture.X86))


def test_registry_get_unknown() -> None:
    with pytest.raises(KeyError):
        CaseRegistry().get("missing")


def test_plugins_register_extra_cases(tmp_path, monkeypatch) -> None:
    from decomptest import _load_plugins
    from decomptest.registry import clear_registry, load_builtins

    (tmp_path / "extra_cases.py").write_text(
        "from decomptest.core import Architecture, ObjectFormat, SampleRef, TestCase\n"
        "from decomptest.registry import register_case\n"
        "def register():\n"
        "    register_case(TestCase(name='plugin_mips', architecture=Architecture.MIPS,\n"
        "                           object_format=ObjectFormat.ELF, sample=SampleRef('mips/plugin.elf')))\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setenv("DECOMPTEST_PLUGINS", "extra_cases, ")
    try:
        _load_plugins()
        assert registry.get("plugin_mips").architecture is Architecture.MIPS
    finally:
        clear_registry()
        load_builtins()


def test_every_architecture_has_a_calling_convention_case() -> None:
    covered = {
        case.architecture
        for case in BUILTIN_CASES
        if case.expected is not None and case.expected.calling_conventions
    }
    assert covered == set(Architecture)
