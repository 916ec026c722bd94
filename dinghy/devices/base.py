"""
Device model for Dinghy.

A device is something able to run a bundle: the host itself, an Android
device reached through adb, a board reached over ssh or an iOS simulator.
Every device goes through the same steps:

    bundle  -> stage the executable, its libraries, sources and test data
               into ``<exe dir>/dinghy/<exe name>`` on the host
    install -> copy the staged tree to the device
    run     -> run the executable on the device
    clean   -> remove the tree from the device

Failures are never retried and nothing is rolled back: a bundle left over by
a failed step stays in place until clean_app is called.
"""

import logging
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple

from dinghy.backends.base import BuildResult, Runnable
from dinghy.core.exceptions import (
    BundleError,
    TransportError,
    UnsupportedOperationError,
)

if TYPE_CHECKING:
    from dinghy.platforms.base import Platform
    from dinghy.project import Project

logger = logging.getLogger(__name__)

BUNDLE_DIR_NAME = "dinghy"
LIB_DIR_NAME = "lib"
SRC_DIR_NAME = "src"

# Set in the environment of every program run through dinghy
MARKER_VARIABLE = "DINGHY"


class DeviceKind(Enum):
    HOST = "host"
    ANDROID = "android"
    SSH = "ssh"
    IOS = "ios"


# ============================================================================
# Bundles
# ============================================================================


@dataclass(frozen=True)
class BuildBundle:
    """
    Location of a staged bundle.

    All paths live under root_dir, so the same bundle seen from a device is
    obtained by swapping root_dir for the device's own prefix.

    Attributes:
        id: Bundle identifier (executable file name)
        root_dir: Directory holding every bundle (``<exe dir>/dinghy``)
        bundle_dir: Directory of this bundle
        bundle_exe: Executable inside bundle_dir
        lib_dir: Directory holding the dynamic libraries
    """

    id: str
    root_dir: PurePath
    bundle_dir: PurePath
    bundle_exe: PurePath
    lib_dir: PurePath

    @classmethod
    def for_runnable(cls, runnable: Runnable) -> "BuildBundle":
        exe = Path(runnable.exe)
        root_dir = exe.parent / BUNDLE_DIR_NAME
        bundle_dir = root_dir / exe.name
        return cls(
            id=exe.name,
            root_dir=root_dir,
            bundle_dir=bundle_dir,
            bundle_exe=bundle_dir / exe.name,
            lib_dir=root_dir / LIB_DIR_NAME,
        )

    def replace_prefix_with(self, new_root: PurePath) -> "BuildBundle":
        """
        Same bundle with root_dir replaced by new_root.

        Replacing with the current root returns an equal bundle, and
        replacing back with the original root undoes the change.
        """

        def rebase(path: PurePath) -> PurePath:
            return new_root.joinpath(*path.relative_to(self.root_dir).parts)

        return BuildBundle(
            id=self.id,
            root_dir=new_root,
            bundle_dir=rebase(self.bundle_dir),
            bundle_exe=rebase(self.bundle_exe),
            lib_dir=rebase(self.lib_dir),
        )


def make_bundle(
    project: "Project", build: BuildResult, runnable: Runnable
) -> BuildBundle:
    """
    Stage a runnable into its bundle directory on the host.

    Raises:
        BundleError: If a directory or file cannot be created or copied
    """
    bundle = BuildBundle.for_runnable(runnable)
    bundle_dir = Path(bundle.bundle_dir)
    lib_dir = Path(bundle.lib_dir)

    logger.debug(f"Removing previous bundle {bundle_dir}")
    shutil.rmtree(bundle_dir, ignore_errors=True)

    logger.debug(f"Making bundle {bundle_dir} for {runnable.exe}")
    try:
        bundle_dir.mkdir(parents=True, exist_ok=True)
        lib_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BundleError(f"Couldn't create {bundle_dir}: {e}") from e

    logger.debug("Copying exe to bundle")
    _copy_file(Path(runnable.exe), Path(bundle.bundle_exe))

    logger.debug("Copying dynamic libs to bundle")
    for library in build.dynamic_libraries:
        library = Path(library)
        _copy_file(library, bundle_dir / library.name)
        _copy_file(library, lib_dir / library.name)

    logger.debug("Copying src to bundle")
    project.rec_copy(Path(runnable.source), bundle_dir / SRC_DIR_NAME, False)

    logger.debug("Copying test_data to bundle")
    project.copy_test_data(bundle_dir)

    return bundle


def _copy_file(source: Path, destination: Path) -> None:
    try:
        shutil.copy2(source, destination)
    except OSError as e:
        raise BundleError(f"Couldn't copy {source} to {destination}: {e}") from e


# ============================================================================
# Transport helpers
# ============================================================================


def run_transport(
    cmd: Sequence[str],
    description: str,
    check: bool = True,
    quiet: bool = False,
    capture: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run a transport command (adb, ssh, rsync...).

    Args:
        cmd: Command line
        description: What the command does, used in error messages
        check: Raise on non-zero exit status
        quiet: Discard stdout and stderr
        capture: Capture stdout and stderr as text

    Raises:
        TransportError: If the program is missing, or exits non-zero when
            check is set
    """
    cmd = [str(part) for part in cmd]
    logger.debug(f"Running: {' '.join(cmd)}")
    kwargs = {}
    if capture:
        kwargs.update(capture_output=True, text=True)
    elif quiet:
        kwargs.update(stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    try:
        result = subprocess.run(cmd, **kwargs)
    except OSError as e:
        raise TransportError(f"{description}: couldn't run {cmd[0]} ({e})", cmd) from e

    if check and result.returncode != 0:
        raise TransportError(description, cmd, result.returncode)
    return result


def format_envs(envs: Optional[Mapping[str, str]]) -> List[str]:
    """Shell assignments for envs, values quoted."""
    return [f"{key}={shlex.quote(str(value))}" for key, value in (envs or {}).items()]


def remote_command_line(
    bundle: BuildBundle,
    args: Sequence[str] = (),
    envs: Optional[Mapping[str, str]] = None,
    library_dir: Optional[PurePath] = None,
) -> str:
    """
    Shell command running a bundle on a device.

    Produces ``cd <bundle dir> ; DINGHY=1 <envs> LD_LIBRARY_PATH=<lib
    dir>:"$LD_LIBRARY_PATH" <exe> <args>``, every path and value shell-quoted.
    library_dir defaults to the bundle lib dir.
    """
    parts = [f"cd {shlex.quote(bundle.bundle_dir.as_posix())} ;", f"{MARKER_VARIABLE}=1"]
    parts.extend(format_envs(envs))
    library_dir = library_dir if library_dir is not None else bundle.lib_dir
    parts.append(f'LD_LIBRARY_PATH={shlex.quote(library_dir.as_posix())}:"$LD_LIBRARY_PATH"')
    parts.append(shlex.quote(bundle.bundle_exe.as_posix()))
    parts.extend(shlex.quote(str(arg)) for arg in args)
    return " ".join(parts)


# ============================================================================
# Device & manager interfaces
# ============================================================================


class Device(ABC):
    """
    A device able to run bundles.

    Attributes:
        kind: Transport family, used for compatibility checks
    """

    kind: DeviceKind

    @property
    @abstractmethod
    def id(self) -> str:
        pass

    @property
    def name(self) -> str:
        return self.id

    @property
    def supported_triples(self) -> Tuple[str, ...]:
        """Triples the device can execute, fixed at discovery."""
        return ()

    def bundle_app(
        self, project: "Project", build: BuildResult, runnable: Runnable
    ) -> BuildBundle:
        return make_bundle(project, build, runnable)

    @abstractmethod
    def install_app(self, bundle: BuildBundle) -> BuildBundle:
        """
        Copy a staged bundle to the device.

        Returns:
            The bundle as seen from the device
        """
        pass

    @abstractmethod
    def run_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Run an installed bundle.

        Raises:
            AppFailedError: If the program exits non-zero
            TransportError: If the device cannot be reached
        """
        pass

    @abstractmethod
    def clean_app(self, bundle: BuildBundle) -> None:
        pass

    def debug_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        raise UnsupportedOperationError(self.id, "debug")

    def is_compatible_with(self, platform: "Platform") -> bool:
        from dinghy.devices.compatibility import is_compatible

        return is_compatible(self, platform)

    def describe(self) -> str:
        """One-line human description."""
        return f"{self.kind.value} {self.id}"

    def __str__(self) -> str:
        return self.describe()


class PlatformManager(ABC):
    """
    Discovers the devices (and sometimes platforms) of one transport.

    ``probe`` raises ProbeUnavailableError when the transport's tooling is
    absent; the orchestrator then skips the manager.
    """

    name: str = ""

    @abstractmethod
    def devices(self) -> List[Device]:
        pass

    def platforms(self) -> List["Platform"]:
        return []
