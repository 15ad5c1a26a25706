"""Driver interface exports."""
from .base import DecompilerDriver, DriverManager, driver_manager
from .command import CommandDriver

__all__ = [
    "DecompilerDriver",
    "DriverManager",
    "driver_manager",
    "CommandDriver",
]
