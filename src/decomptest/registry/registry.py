"""Test case registry implementation."""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, Sequence, Tuple, Union

from decomptest.core import Architecture, ObjectFormat, TestCase


class CaseRegistry:
    """Stores test cases in declaration order and exposes lookup utilities.

    Cases are registered at startup; ``freeze`` closes the registry so the
    set of cases cannot change while a run is in progress.
    """

    def __init__(self, cases: Sequence[TestCase] = ()) -> None:
        self._cases: Dict[str, TestCase] = {}
        self._frozen = False
        for case in cases:
            self.register(case)

    def register(self, case: TestCase) -> TestCase:
        if self._frozen:
            raise RuntimeError(f"Cannot register case '{case.name}': registry is frozen")
        if case.name in self._cases:
            raise ValueError(f"Case '{case.name}' already registered")
        self._cases[case.name] = case
        return case

    def freeze(self) -> "CaseRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def list_cases(self) -> Tuple[TestCase, ...]:
        return tuple(self._cases.values())

    def cases_for_architecture(self, arch: Union[Architecture, str]) -> Tuple[TestCase, ...]:
        target = Architecture.parse(arch)
        return tuple(case for case in self._cases.values() if case.architecture is target)

    def cases_for_format(self, fmt: Union[ObjectFormat, str]) -> Tuple[TestCase, ...]:
        target = ObjectFormat.parse(fmt)
        return tuple(case for case in self._cases.values() if case.object_format is target)

    def get(self, name: str) -> TestCase:
        try:
            return self._cases[name]
        except KeyError as exc:
            raise KeyError(f"Case '{name}' is not registered") from exc

    def __contains__(self, name: str) -> bool:
        return name in self._cases

    def __iter__(self) -> Iterator[TestCase]:
        return iter(self._cases.values())

    def __len__(self) -> int:
        return len(self._cases)

    def names(self) -> Iterable[str]:
        return tuple(self._cases.keys())


registry = CaseRegistry()


def register_case(case: TestCase) -> TestCase:
    return registry.register(case)


def clear_registry() -> None:
    registry._cases.clear()
    registry._frozen = False


def load_builtins() -> None:
    from . import builtins  # noqa: WPS433

    for case in builtins.BUILTIN_CASES:
        if case.name not in registry:
            registry.register(case)
