"""
Tests for shim script generation.
"""

import os

import pytest

from dinghy.core.exceptions import ShimError
from dinghy.core.filesystem import IS_WINDOWS
from dinghy.toolchain.shim import SHIM_EXTENSION, create_shim, render_shim, shim_path


class TestRenderShim:
    """Test shim text rendering."""

    def test_posix(self):
        text = render_shim("cc", "/opt/tc/bin/arm-gcc", '"$@"', windows=False)
        assert text == (
            "#!/bin/sh\n"
            "# cc shim generated by dinghy\n"
            '/opt/tc/bin/arm-gcc "$@"\n'
        )

    def test_windows(self):
        text = render_shim("linker", "C:\\tc\\gcc.exe", "%*", windows=True)
        assert text.startswith("@echo off\n")
        assert text.endswith("C:\\tc\\gcc.exe %*\n")

    def test_command_with_arguments(self):
        text = render_shim("linker", "gcc --sysroot /sr -lssl", '"$@"', windows=False)
        assert text.splitlines()[-1] == 'gcc --sysroot /sr -lssl "$@"'


class TestCreateShim:
    """Test writing shim files."""

    def test_creates_directory_and_file(self, tmp_path):
        shim_dir = tmp_path / "target" / "armv7" / "pi"

        path = create_shim(shim_dir, "cc", "/opt/tc/bin/arm-gcc")

        assert path == shim_path(shim_dir, "cc")
        assert path.name == f"cc{SHIM_EXTENSION}"
        assert "/opt/tc/bin/arm-gcc" in path.read_text()

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX permission bits")
    def test_is_executable(self, tmp_path):
        path = create_shim(tmp_path, "cc", "gcc")
        assert os.access(path, os.X_OK)
        assert path.stat().st_mode & 0o777 == 0o755

    def test_idempotent(self, tmp_path):
        first = create_shim(tmp_path, "cc", "gcc").read_text()
        second = create_shim(tmp_path, "cc", "gcc").read_text()
        assert first == second

    def test_rewrites_changed_command(self, tmp_path):
        create_shim(tmp_path, "cc", "gcc")
        path = create_shim(tmp_path, "cc", "clang")
        assert "clang" in path.read_text()
        assert "gcc" not in path.read_text()

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ShimError, match="Couldn't create shim"):
            create_shim(blocker / "shims", "cc", "gcc")
