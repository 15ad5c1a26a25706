"""Data models for plan files."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from decomptest.core import TestCase


@dataclass(frozen=True)
class DecompilerConfig:
    command: Sequence[str]
    env: Mapping[str, str] = field(default_factory=dict)
    workdir: Optional[Path] = None
    timeout: Optional[float] = None
    driver: Optional[str] = None
    architectures: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExecutionPlan:
    corpus: Path
    scratch: Path
    decompiler: DecompilerConfig
    cases: Sequence[TestCase]
    workers: int = 1
    keep_scratch: str = "on-failure"
    include_builtins: bool = False
    description: str = ""


@dataclass(frozen=True)
class RunOptions:
    corpus: Optional[str] = None
    architectures: Sequence[str] = field(default_factory=tuple)
    formats: Sequence[str] = field(default_factory=tuple)
    cases: Sequence[str] = field(default_factory=tuple)
    tags: Sequence[str] = field(default_factory=tuple)
    workers: Optional[int] = None
    timeout: Optional[float] = None
    keep_scratch: Optional[str] = None
    list_only: bool = False
