"""
Cross toolchain description and environment setup.

A ``Toolchain`` knows the target triple expected by the build tool and where
its shims live. A ``ToolchainConfig`` adds the location of an actual cross
toolchain (binaries, root, sysroot) and knows how to point the build tool at
it through environment variables and shims.

Usage:
    from dinghy.toolchain.toolchain import ToolchainConfig

    tc = ToolchainConfig.from_directory(Path("/opt/arm-tc"),
                                        "armv7-unknown-linux-gnueabihf",
                                        shim_dir)
    tc.setup_cc(env, tc.cc_executable())
    tc.setup_linker(env, f"{tc.cc_executable()} --sysroot {tc.sysroot}")
    tc.setup_pkg_config(env)
    tc.shim_executables(env)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dinghy.core.environment import BuildEnvironment, envify
from dinghy.core.exceptions import ToolchainMalformedError
from dinghy.cross.sysroot import find_sysroot
from dinghy.toolchain.shim import create_shim

logger = logging.getLogger(__name__)

COMPILER_SUFFIXES = ("-gcc", "-gcc.exe")
# Renamed toolchain executables; the only shim directory put on PATH
EXECUTABLE_SHIM_DIR = "bin"


@dataclass
class Toolchain:
    """
    Build-tool facing half of a toolchain.

    Attributes:
        triple: Target triple as the build tool spells it
        shim_dir: Directory receiving the shim scripts of this platform
    """

    triple: str
    shim_dir: Path

    @property
    def executable_shim_dir(self) -> Path:
        return self.shim_dir / EXECUTABLE_SHIM_DIR

    def setup_ar(self, env: BuildEnvironment, ar_command: str) -> None:
        env.set("TARGET_AR", ar_command)

    def setup_tool(self, env: BuildEnvironment, var: str, command: str) -> None:
        """Point TARGET_<var> at command."""
        env.set(f"TARGET_{var}", command)

    def setup_pkg_config(self, env: BuildEnvironment) -> None:
        env.set("PKG_CONFIG_ALLOW_CROSS", "1")
        env.set_target("PKG_CONFIG_LIBPATH", self.triple, "")

    def setup_cc(self, env: BuildEnvironment, compiler_command: str) -> Path:
        return self._setup_shim(env, "TARGET_CC", "cc", compiler_command)

    def setup_linker(self, env: BuildEnvironment, linker_command: str) -> Path:
        var = f"CARGO_TARGET_{envify(self.triple)}_LINKER"
        return self._setup_shim(env, var, "linker", linker_command)

    def _setup_shim(
        self, env: BuildEnvironment, var: str, name: str, command: str
    ) -> Path:
        shim = create_shim(self.shim_dir, name, command)
        env.set(var, shim)
        return shim


@dataclass
class ToolchainConfig(Toolchain):
    """
    A cross toolchain installed on the host.

    Attributes:
        bin_dir: Directory holding the toolchain executables
        root: Toolchain root directory
        sysroot: Target sysroot
        tc_triple: Prefix the toolchain uses for its executables
        cc: Compiler name without prefix ('gcc', 'clang')
        cc_prefix: Prefix of compiler executables (defaults to tc_triple)
        binutils_prefix: Prefix of binutils executables (defaults to tc_triple)
        multiarch: Toolchain is a Debian multiarch cross toolchain in /usr
    """

    bin_dir: Path = Path("/usr/bin")
    root: Path = Path("/")
    sysroot: Path = Path("/")
    tc_triple: str = ""
    cc: str = "gcc"
    cc_prefix: Optional[str] = None
    binutils_prefix: Optional[str] = None
    multiarch: bool = False

    @classmethod
    def from_directory(
        cls, toolchain_path: Path, triple: str, shim_dir: Path
    ) -> "ToolchainConfig":
        """
        Inspect a toolchain directory.

        The executable prefix is taken from the first ``bin/*-gcc`` file.

        Raises:
            ToolchainMalformedError: If the directory, compiler or sysroot is
                missing
        """
        toolchain_path = Path(toolchain_path)
        bin_dir = toolchain_path / "bin"
        try:
            names = sorted(entry.name for entry in bin_dir.iterdir())
        except OSError as e:
            raise ToolchainMalformedError(
                toolchain_path, f"couldn't read toolchain directory ({e})"
            ) from e

        tc_triple = None
        for name in names:
            if name.endswith(COMPILER_SUFFIXES):
                tc_triple = name.replace(".exe", "").replace("-gcc", "")
                break
        if tc_triple is None:
            raise ToolchainMalformedError(toolchain_path, "no bin/*-gcc found")

        sysroot = find_sysroot(toolchain_path)
        logger.debug(
            f"Toolchain {toolchain_path}: prefix {tc_triple}, sysroot {sysroot}"
        )
        return cls(
            triple=triple,
            shim_dir=shim_dir,
            bin_dir=bin_dir,
            root=toolchain_path,
            sysroot=sysroot,
            tc_triple=tc_triple,
        )

    @classmethod
    def deb_multiarch(
        cls, multiarch: str, triple: str, shim_dir: Path
    ) -> "ToolchainConfig":
        """Debian cross toolchain installed as /usr/bin/<multiarch>-gcc."""
        return cls(
            triple=triple,
            shim_dir=shim_dir,
            bin_dir=Path("/usr/bin"),
            root=Path("/"),
            sysroot=Path("/"),
            tc_triple=multiarch,
            multiarch=True,
        )

    def executable(self, name_without_triple: str) -> Path:
        return self.bin_dir / f"{self.tc_triple}-{name_without_triple}"

    def cc_executable(self, name_without_triple: Optional[str] = None) -> Path:
        name = name_without_triple or self.cc
        prefix = self.cc_prefix if self.cc_prefix is not None else self.tc_triple
        return self.bin_dir / f"{prefix}-{name}"

    def binutils_executable(self, name_without_triple: str) -> Path:
        prefix = (
            self.binutils_prefix if self.binutils_prefix is not None else self.tc_triple
        )
        return self.bin_dir / f"{prefix}-{name_without_triple}"

    def pkg_config_dirs(self) -> List[Path]:
        """Every ``pkgconfig`` directory shipped with the toolchain."""
        if self.multiarch:
            candidates = [
                Path("/usr/lib") / self.tc_triple / "pkgconfig",
                Path("/usr/share/pkgconfig"),
            ]
            return [c for c in candidates if c.is_dir()]

        found = []
        for current, dirnames, _ in os.walk(self.root):
            if Path(current).name == "pkgconfig":
                found.append(Path(current))
            dirnames.sort()
        return found

    def setup_pkg_config(self, env: BuildEnvironment) -> None:
        super().setup_pkg_config(env)
        dirs = self.pkg_config_dirs()
        if dirs:
            env.append_target_path(
                "PKG_CONFIG_LIBDIR",
                self.triple,
                os.pathsep.join(str(d) for d in dirs),
            )
        env.set_target("PKG_CONFIG_SYSROOT_DIR", self.triple, self.sysroot)

    def setup_sysroot(self, env: BuildEnvironment) -> None:
        env.set("TARGET_SYSROOT", self.sysroot)

    def shim_executables(self, env: BuildEnvironment) -> List[Path]:
        """
        Shim every toolchain executable under the build tool's triple.

        ``arm-linux-gnueabihf-strip`` becomes
        ``<shim dir>/bin/armv7-unknown-linux-gnueabihf-strip`` for instance.
        Executables whose name is already right are not shimmed. Only
        ``<shim dir>/bin`` goes on PATH, never the ``cc`` and ``linker`` shims.
        """
        shims = []
        try:
            entries = sorted(self.bin_dir.iterdir())
        except OSError as e:
            raise ToolchainMalformedError(
                self.bin_dir, f"couldn't read binaries ({e})"
            ) from e

        for exe in entries:
            if not exe.is_file():
                continue
            if self.multiarch and not exe.name.startswith(f"{self.tc_triple}-"):
                continue
            name = exe.name
            if self.tc_triple:
                name = name.replace(self.tc_triple, self.triple)
            if name == exe.name:
                continue
            logger.debug(f"Shim {exe} -> {name}")
            shims.append(create_shim(self.executable_shim_dir, name, f"{exe}"))
        if shims:
            env.prepend_path("PATH", self.executable_shim_dir)
        return shims


__all__ = [
    "Toolchain",
    "ToolchainConfig",
]
