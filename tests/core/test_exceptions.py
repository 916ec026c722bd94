"""
Tests for the Dinghy exception hierarchy.
"""

import pytest

from dinghy.core.exceptions import (
    AppFailedError,
    BuildError,
    BundleError,
    CompatibilityMismatchError,
    ConfigError,
    DeviceError,
    DinghyError,
    LibraryNameError,
    OverlayError,
    OverlayReadError,
    ProbeUnavailableError,
    ProjectNotFoundError,
    ShimError,
    ToolchainError,
    ToolchainMalformedError,
    TransportError,
    UnsupportedOperationError,
)


class TestHierarchy:
    """Test that every error can be caught as DinghyError."""

    @pytest.mark.parametrize(
        "error_class",
        [
            ConfigError,
            ProjectNotFoundError,
            ProbeUnavailableError,
            ToolchainError,
            ShimError,
            OverlayError,
            OverlayReadError,
            BuildError,
            BundleError,
            DeviceError,
            CompatibilityMismatchError,
        ],
    )
    def test_subclass_of_base(self, error_class):
        """Test simple errors derive from DinghyError."""
        assert issubclass(error_class, DinghyError)

    def test_toolchain_family(self):
        """Test toolchain errors share a base."""
        assert issubclass(ToolchainMalformedError, ToolchainError)
        assert issubclass(ShimError, ToolchainError)

    def test_device_family(self):
        """Test device errors share a base."""
        for error_class in (TransportError, AppFailedError, UnsupportedOperationError):
            assert issubclass(error_class, DeviceError)


class TestMessages:
    """Test error messages and attributes."""

    def test_malformed_toolchain(self):
        error = ToolchainMalformedError("/opt/tc", "no sysroot found")
        assert error.toolchain_path == "/opt/tc"
        assert error.reason == "no sysroot found"
        assert "/opt/tc" in str(error)
        assert "no sysroot found" in str(error)

    def test_library_name(self):
        error = LibraryNameError("/overlay/lib.so")
        assert isinstance(error, OverlayError)
        assert error.file_path == "/overlay/lib.so"
        assert "valid lib name" in str(error)

    def test_transport_with_exit_code(self):
        error = TransportError("rsync failed", ["rsync", "-a"], 23)
        assert str(error) == "rsync failed (exit code 23)"
        assert error.command == ["rsync", "-a"]
        assert error.returncode == 23

    def test_transport_without_exit_code(self):
        error = TransportError("ssh not found")
        assert str(error) == "ssh not found"
        assert error.command == []
        assert error.returncode is None

    def test_app_failed(self):
        error = AppFailedError("pi", 3)
        assert error.device_id == "pi"
        assert error.returncode == 3
        assert "pi" in str(error)
        assert "3" in str(error)

    def test_unsupported_operation(self):
        error = UnsupportedOperationError("emulator-5554", "debug")
        assert error.operation == "debug"
        assert "debug" in str(error)
        assert "emulator-5554" in str(error)
