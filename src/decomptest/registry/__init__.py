"""Test case registry public API."""
from .registry import (
    CaseRegistry,
    clear_registry,
    load_builtins,
    register_case,
    registry,
)

__all__ = [
    "CaseRegistry",
    "registry",
    "register_case",
    "load_builtins",
    "clear_registry",
]
