"""
iOS platform, driven by the Xcode command line tools.

Only available on macOS hosts. The sysroot is the SDK reported by xcrun, and
the host ``cc`` links against it.
"""

import logging
from pathlib import Path
from typing import List, Optional

from dinghy.backends.base import BuildArgs, BuildBackend
from dinghy.config.parser import PlatformConfig
from dinghy.core.environment import BuildEnvironment
from dinghy.cross.overlay import Overlayer
from dinghy.cross.sysroot import sdk_path
from dinghy.platforms.base import Platform, PlatformKind
from dinghy.toolchain.toolchain import Toolchain

logger = logging.getLogger(__name__)

SIMULATOR_SDK = "iphonesimulator"
DEVICE_SDK = "iphoneos"


def is_simulator_triple(triple: str) -> bool:
    """x86 triples and ``-sim`` triples run in the simulator."""
    return "86" in triple or triple.endswith("-sim")


class IosPlatform(Platform):
    kind = PlatformKind.IOS

    def __init__(
        self,
        platform_id: str,
        triple: str,
        config: PlatformConfig,
        backend: BuildBackend,
        shim_dir: Path,
    ):
        super().__init__(platform_id, triple, config, backend)
        self.sim = is_simulator_triple(triple)
        self.toolchain = Toolchain(triple=triple, shim_dir=shim_dir)
        self._sysroot: Optional[Path] = None

    @property
    def sdk(self) -> str:
        return SIMULATOR_SDK if self.sim else DEVICE_SDK

    @property
    def sysroot(self) -> Path:
        if self._sysroot is None:
            self._sysroot = sdk_path(self.sdk)
        return self._sysroot

    def prepare_environment(self, project, build_args: BuildArgs) -> BuildEnvironment:
        sysroot = self.sysroot
        env = self.new_environment()
        overlayer = Overlayer(
            self.id, self.triple, sysroot, project.overlay_work_dir(self.triple, self.id)
        )
        overlayer.overlay(env, self.config.overlays, project.root)

        self.toolchain.setup_cc(env, "gcc")
        env.set("TARGET_SYSROOT", sysroot)
        self.toolchain.setup_linker(env, f"cc -isysroot {sysroot}")
        self.toolchain.setup_pkg_config(env)
        return env

    def strip_command(self) -> List[str]:
        return ["xcrun", "strip"]

    def describe(self) -> str:
        target = "Ios Simulator" if self.sim else "Ios Device"
        return f"{self.id} (XCode targeting {target}, {self.triple})"
