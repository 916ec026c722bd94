"""
Cross-compilation support.

Sysroot discovery and the overlay mechanism that exposes target-specific
native libraries to pkg-config.
"""

from dinghy.cross.overlay import Overlay, Overlayer, OverlayScope, lib_name
from dinghy.cross.sysroot import find_sysroot, path_between, sdk_path

__all__ = [
    "Overlay",
    "Overlayer",
    "OverlayScope",
    "lib_name",
    "find_sysroot",
    "path_between",
    "sdk_path",
]
