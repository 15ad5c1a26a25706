"""Outcome variants of a single decompiler invocation."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class Success:
    """The decompiler finished and reported usable artifacts."""

    artifacts: Mapping[str, Any] = field(default_factory=dict)
    diagnostics: str = ""
    duration_s: float = 0.0


@dataclass(frozen=True)
class Failure:
    """The decompiler crashed, exited non-zero, or produced unusable output."""

    error: str
    diagnostic: str = ""
    exit_code: Optional[int] = None
    duration_s: float = 0.0


@dataclass(frozen=True)
class Timeout:
    """The decompiler ran past its timeout and was killed."""

    timeout_s: float
    diagnostic: str = ""


DecompilationResult = Union[Success, Failure, Timeout]
