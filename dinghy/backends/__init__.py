"""
Build backends for Dinghy.
"""

from dinghy.backends.base import (
    BuildArgs,
    BuildBackend,
    BuildResult,
    CompileMode,
    Runnable,
)
from dinghy.backends.cargo import CargoBackend

__all__ = [
    "BuildArgs",
    "BuildBackend",
    "BuildResult",
    "CargoBackend",
    "CompileMode",
    "Runnable",
]
