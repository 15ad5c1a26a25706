"""Decompiler driver abstractions."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable

from decomptest.core import DecompilationResult, ResolvedSample, TestCase


class DecompilerDriver:
    """Base interface for decompiler drivers.

    A driver invokes the decompiler once per case with the architecture and
    format hints taken from the case, and reports the outcome as a
    :data:`DecompilationResult`. Only faults of the harness itself (missing
    executable, unwritable scratch directory) are raised.
    """

    name: str = ""

    def supports(self, case: TestCase) -> bool:
        return True

    def run(
        self,
        case: TestCase,
        sample: ResolvedSample,
        scratch_dir: Path,
        timeout: float,
    ) -> DecompilationResult:
        raise NotImplementedError


class DriverManager:
    """Registry for decompiler drivers keyed by name."""

    def __init__(self) -> None:
        self._drivers: Dict[str, DecompilerDriver] = {}

    def register(self, driver: DecompilerDriver) -> None:
        if not driver.name:
            raise ValueError("Driver must have a name")
        if driver.name in self._drivers:
            raise ValueError(f"Driver '{driver.name}' already registered")
        self._drivers[driver.name] = driver

    def get_driver(self, name: str) -> DecompilerDriver:
        try:
            return self._drivers[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._drivers)) or "none"
            raise KeyError(f"No decompiler driver registered as {name!r} (available: {available})") from exc

    def unregister(self, name: str) -> None:
        self._drivers.pop(name, None)

    def drivers(self) -> Iterable[DecompilerDriver]:
        return tuple(self._drivers.values())

    def __contains__(self, name: str) -> bool:
        return name in self._drivers


driver_manager = DriverManager()
