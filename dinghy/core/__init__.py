"""
Core functionality for Dinghy.

This package contains the foundational modules that other components depend on.
"""

from .environment import BuildEnvironment, envify, target_key
from .host import HostInfo, detect_host, clear_host_cache
from .exceptions import (
    DinghyError,
    ConfigError,
    ProjectNotFoundError,
    ProbeUnavailableError,
    ToolchainError,
    ToolchainMalformedError,
    ShimError,
    OverlayError,
    OverlayReadError,
    LibraryNameError,
    BuildError,
    BundleError,
    DeviceError,
    TransportError,
    AppFailedError,
    UnsupportedOperationError,
    CompatibilityMismatchError,
)

__all__ = [
    "BuildEnvironment",
    "envify",
    "target_key",
    "HostInfo",
    "detect_host",
    "clear_host_cache",
    "DinghyError",
    "ConfigError",
    "ProjectNotFoundError",
    "ProbeUnavailableError",
    "ToolchainError",
    "ToolchainMalformedError",
    "ShimError",
    "OverlayError",
    "OverlayReadError",
    "LibraryNameError",
    "BuildError",
    "BundleError",
    "DeviceError",
    "TransportError",
    "AppFailedError",
    "UnsupportedOperationError",
    "CompatibilityMismatchError",
]
