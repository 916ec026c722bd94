"""Cross toolchain shims and configuration."""

from dinghy.toolchain.shim import ARGS_FORWARDING, create_shim, render_shim
from dinghy.toolchain.toolchain import Toolchain, ToolchainConfig

__all__ = [
    "ARGS_FORWARDING",
    "create_shim",
    "render_shim",
    "Toolchain",
    "ToolchainConfig",
]
