"""
Host platform: build for the machine dinghy runs on.
"""

from pathlib import Path
from typing import List, Optional

from dinghy.backends.base import BuildArgs, BuildBackend
from dinghy.config.parser import PlatformConfig
from dinghy.core.environment import BuildEnvironment
from dinghy.core.host import detect_host
from dinghy.cross.overlay import Overlayer
from dinghy.platforms.base import Platform, PlatformKind

HOST_PLATFORM_ID = "host"


class HostPlatform(Platform):
    """Native build; no cross toolchain, sysroot is ``/``."""

    kind = PlatformKind.HOST

    def __init__(
        self,
        backend: BuildBackend,
        config: Optional[PlatformConfig] = None,
        platform_id: str = HOST_PLATFORM_ID,
    ):
        config = config or PlatformConfig(name=platform_id)
        super().__init__(platform_id, None, config, backend)

    @property
    def sysroot(self) -> Path:
        return Path("/")

    def excluded_lib_dirs(self) -> List[Path]:
        return []

    def prepare_environment(self, project, build_args: BuildArgs) -> BuildEnvironment:
        env = self.new_environment()
        overlayer = Overlayer(
            self.id, None, self.sysroot, project.overlay_work_dir(None, self.id)
        )
        overlayer.overlay(env, self.config.overlays, project.root)
        return env

    def strip_command(self) -> List[str]:
        return ["strip"]

    def describe(self) -> str:
        return f"{self.id} (native {detect_host().triple})"
