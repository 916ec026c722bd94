"""
Sysroot helpers for cross-compilation.

Locates the sysroot shipped inside a toolchain directory, asks Xcode for SDK
locations on macOS, and computes sysroot-relative paths for pkg-config.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Union

from dinghy.core.exceptions import ToolchainError, ToolchainMalformedError

logger = logging.getLogger(__name__)

SYSROOT_DIR_NAME = "sysroot"


def find_sysroot(toolchain_path: Union[str, Path]) -> Path:
    """
    Find the sysroot of a toolchain directory.

    Looks for ``<toolchain>/sysroot`` first, then for ``<toolchain>/*/sysroot``.

    Raises:
        ToolchainMalformedError: If no sysroot directory exists
    """
    toolchain_path = Path(toolchain_path)
    immediate = toolchain_path / SYSROOT_DIR_NAME
    if immediate.is_dir():
        return immediate

    try:
        subdirs = sorted(p for p in toolchain_path.iterdir() if p.is_dir())
    except OSError as e:
        raise ToolchainMalformedError(
            toolchain_path, f"couldn't read directory ({e})"
        ) from e

    for subdir in subdirs:
        candidate = subdir / SYSROOT_DIR_NAME
        if candidate.is_dir():
            return candidate

    raise ToolchainMalformedError(toolchain_path, "no sysroot found")


def sdk_path(sdk: str) -> Path:
    """
    Ask xcrun for the path of an Apple SDK.

    Args:
        sdk: SDK name ('iphoneos', 'iphonesimulator'...)

    Raises:
        ToolchainError: If xcrun is missing or fails
    """
    if shutil.which("xcrun") is None:
        raise ToolchainError("xcrun not found, Xcode command line tools are required")

    cmd = ["xcrun", "--sdk", sdk, "--show-sdk-path"]
    logger.debug(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise ToolchainError(
            f"Couldn't find SDK {sdk}: {result.stderr.strip() or result.returncode}"
        )
    return Path(result.stdout.strip())


def path_between(sysroot: Union[str, Path], path: Union[str, Path]) -> str:
    """
    Express path as an absolute path inside sysroot.

    Example:
        >>> path_between("/opt/sysroot", "/opt/sysroot/usr/lib")
        '/usr/lib'
        >>> path_between("/opt/sysroot", "/home/me/overlay")
        '/../../home/me/overlay'
    """
    relative = os.path.relpath(os.path.abspath(path), os.path.abspath(sysroot))
    if relative == ".":
        return "/"
    return "/" + Path(relative).as_posix()


__all__ = [
    "find_sysroot",
    "sdk_path",
    "path_between",
]
