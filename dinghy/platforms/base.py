"""
Platform interface for Dinghy.

A platform is a build target: a triple plus everything needed to steer the
build tool's compiler and linker toward it. ``Platform.build`` prepares a
fresh BuildEnvironment, hands it to the build backend and optionally strips
the produced binaries.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence

from dinghy.backends.base import BuildArgs, BuildBackend, BuildResult, Runnable
from dinghy.config.parser import PlatformConfig
from dinghy.core.environment import BuildEnvironment

if TYPE_CHECKING:
    from dinghy.devices.base import Device
    from dinghy.project import Project

logger = logging.getLogger(__name__)


class PlatformKind(Enum):
    HOST = "host"
    REGULAR = "regular"
    IOS = "ios"


def strip_runnable(runnable: Runnable, strip_command: Sequence[str]) -> bool:
    """
    Strip one binary in place.

    A failing strip is reported, never raised.

    Returns:
        True if the binary was stripped
    """
    cmd = [*strip_command, str(runnable.exe)]
    logger.info(f"Stripping {runnable.exe}")
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        logger.warning(f"Couldn't strip {runnable.exe}: {e}")
        return False
    if result.returncode != 0:
        logger.warning(
            f"Couldn't strip {runnable.exe}: {result.stderr.strip() or result.returncode}"
        )
        return False
    return True


class Platform(ABC):
    """
    A buildable target.

    Attributes:
        id: Platform identifier (configuration name)
        triple: Target triple, None when building for the host
        config: Platform configuration (env overrides, overlays)
        backend: Build backend doing the actual compilation
    """

    kind: PlatformKind

    def __init__(
        self,
        platform_id: str,
        triple: Optional[str],
        config: PlatformConfig,
        backend: BuildBackend,
    ):
        self._id = platform_id
        self._triple = triple
        self.config = config
        self.backend = backend

    @property
    def id(self) -> str:
        return self._id

    @property
    def triple(self) -> Optional[str]:
        return self._triple

    @property
    @abstractmethod
    def sysroot(self) -> Path:
        pass

    @abstractmethod
    def prepare_environment(
        self, project: "Project", build_args: BuildArgs
    ) -> BuildEnvironment:
        """Build the environment steering the build tool toward the target."""
        pass

    @abstractmethod
    def strip_command(self) -> List[str]:
        pass

    def excluded_lib_dirs(self) -> List[Path]:
        """Library directories provided by the target itself."""
        return [self.sysroot]

    def new_environment(self) -> BuildEnvironment:
        """Environment with leaked variables cleared and the platform env applied."""
        env = BuildEnvironment()
        env.clear()
        env.set_all(self.config.env)
        return env

    def build(self, project: "Project", build_args: BuildArgs) -> BuildResult:
        """
        Build the project for this platform.

        Raises:
            ToolchainError: If shims cannot be set up
            OverlayError: If overlays cannot be resolved
            BuildError: If the build itself fails
        """
        env = self.prepare_environment(project, build_args)
        result = self.backend.build(
            project,
            self.triple,
            build_args,
            env.to_environ(),
            self.excluded_lib_dirs(),
        )
        if build_args.strip:
            self.strip(result)
        return result

    def strip(self, build: BuildResult) -> None:
        for runnable in build.runnables:
            strip_runnable(runnable, self.strip_command())

    def is_compatible_with(self, device: "Device") -> bool:
        from dinghy.devices.compatibility import is_compatible

        return is_compatible(device, self)

    def describe(self) -> str:
        return f"{self.id} ({self.triple or 'host'})"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"
