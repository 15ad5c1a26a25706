"""Plan loader and executor."""

from .loader import load_plan
from .models import DecompilerConfig, ExecutionPlan, RunOptions
from .runner import build_driver, build_registry, run_plan, select_cases

__all__ = [
    "DecompilerConfig",
    "ExecutionPlan",
    "RunOptions",
    "build_driver",
    "build_registry",
    "load_plan",
    "run_plan",
    "select_cases",
]
