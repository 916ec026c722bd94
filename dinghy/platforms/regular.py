"""
Platform backed by a cross toolchain installed on the host.

The toolchain is either a directory (``<dir>/bin/<prefix>-gcc`` plus a
sysroot) or a Debian multiarch cross toolchain living in ``/usr``.
"""

import logging
from pathlib import Path
from typing import List, Optional

from dinghy.backends.base import BuildArgs, BuildBackend
from dinghy.config.parser import PlatformConfig
from dinghy.core.environment import BuildEnvironment
from dinghy.cross.overlay import Overlayer
from dinghy.platforms.base import Platform, PlatformKind
from dinghy.toolchain.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)

# Optional tools: (variable suffix, executable name, looked up among binutils)
OPTIONAL_TOOLS = (
    ("AS", "as", True),
    ("CXX", "c++", False),
    ("CPP", "cpp", False),
    ("FC", "gfortran", True),
)


class RegularPlatform(Platform):
    """
    Platform using a regular cross toolchain.

    Example:
        >>> tc = ToolchainConfig.from_directory(Path("/opt/tc"), triple, shim_dir)
        >>> platform = RegularPlatform("pi", config, tc, CargoBackend())
        >>> build = platform.build(project, BuildArgs())
    """

    kind = PlatformKind.REGULAR

    def __init__(
        self,
        platform_id: str,
        config: PlatformConfig,
        toolchain: ToolchainConfig,
        backend: BuildBackend,
    ):
        super().__init__(platform_id, toolchain.triple, config, backend)
        self.toolchain = toolchain

    @classmethod
    def from_config(
        cls,
        platform_id: str,
        config: PlatformConfig,
        project,
        backend: BuildBackend,
        toolchain_path: Optional[Path] = None,
    ) -> "RegularPlatform":
        """
        Create a platform from its configuration.

        Raises:
            ToolchainMalformedError: If the toolchain directory is unusable
        """
        triple = config.triple
        shim_dir = project.shim_dir(triple, platform_id)
        if config.deb_multiarch:
            toolchain = ToolchainConfig.deb_multiarch(config.deb_multiarch, triple, shim_dir)
        else:
            path = Path(toolchain_path or config.toolchain).expanduser()
            toolchain = ToolchainConfig.from_directory(path, triple, shim_dir)
        return cls(platform_id, config, toolchain, backend)

    @property
    def sysroot(self) -> Path:
        return self.toolchain.sysroot

    @property
    def toolchain_root(self) -> Path:
        return self.toolchain.root

    def excluded_lib_dirs(self) -> List[Path]:
        # Everything is under / for multiarch toolchains
        if self.toolchain.multiarch:
            return []
        return [self.sysroot]

    def linker_command(self, build_args: BuildArgs) -> str:
        parts = [str(self.toolchain.cc_executable())]
        if build_args.verbose:
            parts.append("-Wl,--verbose -v")
        parts.append(f"--sysroot {self.sysroot}")
        parts.extend(f"-l{overlay}" for overlay in build_args.forced_overlays)
        return " ".join(parts)

    def prepare_environment(self, project, build_args: BuildArgs) -> BuildEnvironment:
        env = self.new_environment()

        overlayer = Overlayer(
            self.id,
            self.triple,
            self.sysroot,
            project.overlay_work_dir(self.triple, self.id),
        )
        overlayer.overlay(env, self.config.overlays, project.root)

        tc = self.toolchain
        tc.setup_cc(env, str(tc.cc_executable()))
        tc.setup_ar(env, str(tc.binutils_executable("ar")))
        for var, name, binutils in OPTIONAL_TOOLS:
            exe = tc.binutils_executable(name) if binutils else tc.cc_executable(name)
            if exe.exists():
                tc.setup_tool(env, var, str(exe))

        logger.debug("Setup linker...")
        tc.setup_linker(env, self.linker_command(build_args))
        logger.debug("Setup pkg-config...")
        tc.setup_pkg_config(env)
        tc.setup_sysroot(env)
        logger.debug("Setup shims...")
        tc.shim_executables(env)
        return env

    def strip_command(self) -> List[str]:
        return [str(self.toolchain.binutils_executable("strip"))]

    def describe(self) -> str:
        return f"{self.id} ({self.triple}, toolchain {self.toolchain.root})"
