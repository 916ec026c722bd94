"""
Centralized exception hierarchy for Dinghy.

Every failure raised by the core derives from DinghyError so callers can
catch one type at the top level while still telling the kinds apart.
"""

from typing import List, Optional, Sequence


# ============================================================================
# Base Exceptions
# ============================================================================


class DinghyError(Exception):
    """Base exception for all Dinghy errors."""

    pass


class ConfigError(DinghyError):
    """Configuration parsing or validation error."""

    pass


class ProjectNotFoundError(DinghyError):
    """Raised when no project manifest can be found."""

    pass


class ProbeUnavailableError(DinghyError):
    """Raised when an external discovery tool is not available."""

    pass


# ============================================================================
# Toolchain Exceptions
# ============================================================================


class ToolchainError(DinghyError):
    """Base exception for toolchain-related errors."""

    pass


class ToolchainMalformedError(ToolchainError):
    """Raised when a toolchain directory lacks a compiler or a sysroot."""

    def __init__(self, toolchain_path, reason: str):
        self.toolchain_path = toolchain_path
        self.reason = reason
        super().__init__(f"Malformed toolchain {toolchain_path}: {reason}")


class ShimError(ToolchainError):
    """Raised when a shim script cannot be written or made executable."""

    pass


# ============================================================================
# Overlay Exceptions
# ============================================================================


class OverlayError(DinghyError):
    """Base exception for overlay resolution errors."""

    pass


class OverlayReadError(OverlayError):
    """Raised when an overlay directory cannot be read."""

    pass


class LibraryNameError(OverlayError):
    """Raised when a shared library file name yields no library name."""

    def __init__(self, file_path):
        self.file_path = file_path
        super().__init__(f"'{file_path}' doesn't point to a valid lib name")


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(DinghyError):
    """Raised when the external build tool fails."""

    pass


class BundleError(DinghyError):
    """Raised when staging a bundle on the host fails."""

    pass


# ============================================================================
# Device Exceptions
# ============================================================================


class DeviceError(DinghyError):
    """Base exception for device operations."""

    pass


class TransportError(DeviceError):
    """Raised when a transport command (push, rsync, ssh...) exits non-zero."""

    def __init__(
        self, message: str, command: Optional[Sequence[str]] = None, returncode=None
    ):
        self.command: List[str] = list(command) if command else []
        self.returncode = returncode
        if returncode is not None:
            message = f"{message} (exit code {returncode})"
        super().__init__(message)


class AppFailedError(DeviceError):
    """Raised when the program run on a device exits non-zero."""

    def __init__(self, device_id: str, returncode: int):
        self.device_id = device_id
        self.returncode = returncode
        super().__init__(
            f"Program failed on device {device_id} with exit code {returncode}"
        )


class UnsupportedOperationError(DeviceError):
    """Raised when a device transport does not implement an operation."""

    def __init__(self, device_id: str, operation: str):
        self.device_id = device_id
        self.operation = operation
        super().__init__(f"'{operation}' is not supported on device {device_id}")


class CompatibilityMismatchError(DinghyError):
    """Raised when no device and platform pair satisfies a request."""

    pass
