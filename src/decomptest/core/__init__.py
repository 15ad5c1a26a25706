"""Core models and helpers exposed at the package level."""
from .comparator import Mismatch, ObservedFacts, compare_facts, evaluate, extract_facts
from .decompilation import DecompilationResult, Failure, Success, Timeout
from .models import (
    ARCHITECTURES,
    Architecture,
    ArchitectureInfo,
    CfgShape,
    ExpectedFacts,
    FunctionRef,
    ObjectFormat,
    SampleRef,
    TestCase,
)
from .results import CaseResult, RunReport
from .samples import ResolvedSample, SampleResolver

__all__ = [
    "ARCHITECTURES",
    "Architecture",
    "ArchitectureInfo",
    "CaseResult",
    "CfgShape",
    "DecompilationResult",
    "ExpectedFacts",
    "Failure",
    "FunctionRef",
    "Mismatch",
    "ObjectFormat",
    "ObservedFacts",
    "ResolvedSample",
    "RunReport",
    "SampleRef",
    "SampleResolver",
    "Success",
    "TestCase",
    "Timeout",
    "compare_facts",
    "evaluate",
    "extract_facts",
]
