"""
Shim scripts for Dinghy.

A shim is a tiny executable wrapper script that forwards every argument to a
fixed command line. Shims let the external build tool call ``cc`` or
``linker`` while actually running the cross toolchain of the current target.

Usage:
    from dinghy.toolchain.shim import create_shim, render_shim

    text = render_shim("cc", "/opt/tc/bin/arm-linux-gnueabihf-gcc")
    path = create_shim(Path("target/armv7-unknown-linux-gnueabihf/pi"), "cc",
                       "/opt/tc/bin/arm-linux-gnueabihf-gcc")
"""

import logging
import os
from pathlib import Path

from dinghy.core.exceptions import ShimError
from dinghy.core.filesystem import IS_WINDOWS, atomic_write

logger = logging.getLogger(__name__)

if IS_WINDOWS:
    ARGS_FORWARDING = "%*"
    SHIM_EXTENSION = ".bat"
else:
    ARGS_FORWARDING = '"$@"'
    SHIM_EXTENSION = ""

SHIM_MODE = 0o755


def render_shim(
    name: str,
    command: str,
    forward_args: str = ARGS_FORWARDING,
    windows: bool = IS_WINDOWS,
) -> str:
    """
    Render the text of a shim script.

    Args:
        name: Tool name the shim stands for (cc, linker...)
        command: Command line the shim runs
        forward_args: Argument forwarding syntax appended to the command
        windows: Render a batch file instead of a POSIX shell script

    Returns:
        Script content

    Example:
        >>> print(render_shim("cc", "gcc", '"$@"', windows=False))
        #!/bin/sh
        # cc shim generated by dinghy
        gcc "$@"
    """
    if windows:
        return f"@echo off\nrem {name} shim generated by dinghy\n{command} {forward_args}\n"
    return f"#!/bin/sh\n# {name} shim generated by dinghy\n{command} {forward_args}\n"


def shim_path(shim_dir: Path, name: str) -> Path:
    """Location of the shim called name in shim_dir."""
    return shim_dir / f"{name}{SHIM_EXTENSION}"


def create_shim(shim_dir: Path, name: str, command: str) -> Path:
    """
    Write an executable shim running command with all forwarded arguments.

    Recreating a shim with the same command produces the same file.

    Raises:
        ShimError: If the directory or script cannot be written or made
            executable
    """
    path = shim_path(shim_dir, name)
    logger.debug(f"Shim {name} -> {command}")
    try:
        shim_dir.mkdir(parents=True, exist_ok=True)
        atomic_write(path, render_shim(name, command))
        if not IS_WINDOWS:
            os.chmod(path, SHIM_MODE)
    except OSError as e:
        raise ShimError(f"Couldn't create shim {path}: {e}") from e
    return path


__all__ = [
    "ARGS_FORWARDING",
    "SHIM_EXTENSION",
    "render_shim",
    "shim_path",
    "create_shim",
]
