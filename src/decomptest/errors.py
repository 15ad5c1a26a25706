"""Exception hierarchy for harness-level faults."""
from __future__ import annotations


class HarnessError(Exception):
    """Base class for faults raised by the harness itself."""


class CorpusError(HarnessError):
    """The fixture corpus is missing or unusable; aborts the whole run."""


class FixtureError(HarnessError):
    """A single fixture exists but cannot be used (unreadable, wrong digest)."""


class DriverSetupError(HarnessError):
    """The decompiler could not be launched for a case."""


class PlanError(ValueError):
    """Raised when a plan file fails validation."""
