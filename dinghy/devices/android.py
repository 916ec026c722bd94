"""
Android devices, reached through adb.

Usage:
    from dinghy.devices.android import AndroidManager

    manager = AndroidManager.probe(config, project, backend)
    for device in manager.devices():
        print(device.id, device.supported_triples)
"""

import logging
import os
import re
import shutil
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dinghy.backends.base import BuildBackend
from dinghy.config.parser import DinghyConfig, PlatformConfig
from dinghy.core.exceptions import (
    AppFailedError,
    ProbeUnavailableError,
    ToolchainError,
    TransportError,
)
from dinghy.devices.base import (
    BuildBundle,
    Device,
    DeviceKind,
    PlatformManager,
    remote_command_line,
    run_transport,
)
from dinghy.platforms.regular import RegularPlatform
from dinghy.toolchain.toolchain import ToolchainConfig

logger = logging.getLogger(__name__)

ANDROID_PREFIX = PurePosixPath("/data/local/tmp/dinghy")

ABI_PROPERTY = "ro.product.cpu.abilist"

ABI_TRIPLES: Dict[str, str] = {
    "arm64-v8a": "aarch64-linux-android",
    "armeabi-v7a": "armv7-linux-androideabi",
    "armeabi": "arm-linux-androideabi",
    "x86": "i686-linux-android",
}

# Triple the NDK's clang uses for each build triple
NDK_CLANG_TRIPLES: Dict[str, str] = {
    "aarch64-linux-android": "aarch64-linux-android",
    "armv7-linux-androideabi": "armv7a-linux-androideabi",
    "i686-linux-android": "i686-linux-android",
}

DEVICE_LINE = re.compile(r"^(\S+)\tdevice\r?$")

MACOS_ADB = Path("Library/Android/sdk/platform-tools/adb")
MACOS_NDK = Path("Library/Android/sdk/ndk-bundle")


def map_abi_list(abis: Union[str, Iterable[str]]) -> List[str]:
    """
    Map Android ABI names to triples, in order.

    Unknown ABIs are dropped.

    Example:
        >>> map_abi_list("arm64-v8a,mips,armeabi-v7a")
        ['aarch64-linux-android', 'armv7-linux-androideabi']
    """
    if isinstance(abis, str):
        abis = abis.strip().split(",")
    return [ABI_TRIPLES[abi.strip()] for abi in abis if abi.strip() in ABI_TRIPLES]


def find_adb(home: Optional[Path] = None) -> str:
    """
    Locate adb on PATH, then in the default macOS SDK location.

    Raises:
        ProbeUnavailableError: If adb cannot be found
    """
    adb = shutil.which("adb")
    if adb:
        return adb
    mac_place = (home or Path.home()) / MACOS_ADB
    if mac_place.is_file() and os.access(mac_place, os.X_OK):
        return str(mac_place)
    raise ProbeUnavailableError("adb not found in path, android disabled")


def parse_devices_output(output: str) -> List[str]:
    """Serials listed by ``adb devices`` in the ``device`` state."""
    serials = []
    for line in output.split("\n")[1:]:
        match = DEVICE_LINE.match(line)
        if match:
            serials.append(match.group(1))
    return serials


class AndroidDevice(Device):
    kind = DeviceKind.ANDROID

    def __init__(self, adb: str, serial: str, supported_triples: Sequence[str]):
        self.adb = adb
        self.serial = serial
        self._supported_triples = tuple(supported_triples)

    @classmethod
    def from_id(cls, adb: str, serial: str) -> "AndroidDevice":
        result = run_transport(
            [adb, "-s", serial, "shell", "getprop", ABI_PROPERTY],
            f"Couldn't query ABIs of android device {serial}",
            capture=True,
        )
        device = cls(adb, serial, map_abi_list(result.stdout))
        logger.debug(f"Discovered Android device {device.describe()}")
        return device

    @property
    def id(self) -> str:
        return self.serial

    @property
    def supported_triples(self) -> Tuple[str, ...]:
        return self._supported_triples

    def adb_command(self, *args) -> List[str]:
        return [self.adb, "-s", self.serial, *args]

    def to_remote_bundle(self, bundle: BuildBundle) -> BuildBundle:
        return bundle.replace_prefix_with(ANDROID_PREFIX)

    def install_app(self, bundle: BuildBundle) -> BuildBundle:
        remote = self.to_remote_bundle(bundle)
        logger.info(f"Installing {bundle.id} to {self.id}")

        # A previous bundle may not exist
        run_transport(
            self.adb_command("shell", "rm", "-rf", remote.bundle_dir.as_posix()),
            f"Couldn't remove previous bundle on {self.id}",
            check=False,
            quiet=True,
        )
        run_transport(
            self.adb_command("push", str(bundle.bundle_dir), remote.bundle_dir.as_posix()),
            f"Couldn't push {bundle.bundle_dir} to {self.id}",
        )
        logger.debug("chmod target exe")
        run_transport(
            self.adb_command("shell", "chmod", "755", remote.bundle_exe.as_posix()),
            f"Couldn't make {remote.bundle_exe} executable on {self.id}",
        )
        return remote

    def run_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        remote = self.to_remote_bundle(bundle)
        command = remote_command_line(remote, args, envs, library_dir=remote.bundle_dir)
        result = run_transport(
            self.adb_command("shell", command),
            f"Couldn't run {remote.bundle_exe} on {self.id}",
            check=False,
        )
        if result.returncode != 0:
            raise AppFailedError(self.id, result.returncode)

    def clean_app(self, bundle: BuildBundle) -> None:
        remote = self.to_remote_bundle(bundle)
        run_transport(
            self.adb_command("shell", "rm", "-rf", remote.bundle_dir.as_posix()),
            f"Couldn't remove {remote.bundle_dir} from {self.id}",
        )

    def describe(self) -> str:
        return f"android {self.id} ({', '.join(self.supported_triples) or 'no known ABI'})"


# ============================================================================
# NDK discovery
# ============================================================================


def find_ndk(
    environ: Optional[Mapping[str, str]] = None, home: Optional[Path] = None
) -> Optional[Path]:
    """Locate an Android NDK from the usual environment variables."""
    environ = os.environ if environ is None else environ
    candidates = []
    for var in ("ANDROID_NDK_HOME", "ANDROID_NDK_ROOT"):
        if environ.get(var):
            candidates.append(Path(environ[var]))
    if environ.get("ANDROID_SDK_ROOT"):
        candidates.append(Path(environ["ANDROID_SDK_ROOT"]) / "ndk-bundle")
    candidates.append((home or Path.home()) / MACOS_NDK)

    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None


def ndk_prebuilt(ndk: Path) -> Optional[Path]:
    """LLVM prebuilt toolchain directory of an NDK."""
    prebuilt_root = ndk / "toolchains" / "llvm" / "prebuilt"
    if not prebuilt_root.is_dir():
        return None
    hosts = sorted(p for p in prebuilt_root.iterdir() if (p / "bin").is_dir())
    return hosts[0] if hosts else None


def ndk_toolchain(
    prebuilt: Path, triple: str, api_level: int, shim_dir: Path
) -> Optional[ToolchainConfig]:
    clang_triple = NDK_CLANG_TRIPLES.get(triple)
    if clang_triple is None:
        return None
    toolchain = ToolchainConfig(
        triple=triple,
        shim_dir=shim_dir,
        bin_dir=prebuilt / "bin",
        root=prebuilt,
        sysroot=prebuilt / "sysroot",
        tc_triple=clang_triple,
        cc="clang",
        cc_prefix=f"{clang_triple}{api_level}",
        binutils_prefix="llvm",
    )
    if not toolchain.cc_executable().exists():
        logger.debug(f"No {toolchain.cc_executable()} in NDK, skipping {triple}")
        return None
    return toolchain


def auto_platform_id(triple: str) -> str:
    return f"auto-android-{triple.split('-')[0]}"


class AndroidManager(PlatformManager):
    name = "android"

    def __init__(
        self,
        adb: str,
        config: Optional[DinghyConfig] = None,
        project=None,
        backend: Optional[BuildBackend] = None,
    ):
        self.adb = adb
        self.config = config or DinghyConfig()
        self.project = project
        self.backend = backend

    @classmethod
    def probe(
        cls,
        config: Optional[DinghyConfig] = None,
        project=None,
        backend: Optional[BuildBackend] = None,
    ) -> "AndroidManager":
        adb = find_adb()
        logger.info(f"Using {adb}")
        return cls(adb, config, project, backend)

    def devices(self) -> List[Device]:
        result = run_transport([self.adb, "devices"], "Couldn't list android devices", capture=True)
        devices = []
        for serial in parse_devices_output(result.stdout):
            try:
                devices.append(AndroidDevice.from_id(self.adb, serial))
            except TransportError as e:
                logger.warning(f"Ignoring android device {serial}: {e}")
        return devices

    def platforms(self) -> List[RegularPlatform]:
        """Platforms backed by the NDK, one per known ABI."""
        if self.project is None or self.backend is None:
            return []
        ndk = find_ndk()
        if ndk is None:
            logger.debug("No Android NDK found")
            return []
        prebuilt = ndk_prebuilt(ndk)
        if prebuilt is None:
            logger.info(f"No LLVM prebuilt toolchain in NDK {ndk}")
            return []

        platforms = []
        for triple in ABI_TRIPLES.values():
            platform_id = auto_platform_id(triple)
            if platform_id in self.config.platforms:
                continue
            try:
                toolchain = ndk_toolchain(
                    prebuilt,
                    triple,
                    self.config.android.api_level,
                    self.project.shim_dir(triple, platform_id),
                )
            except ToolchainError as e:
                logger.info(f"Skipping {platform_id}: {e}")
                continue
            if toolchain is None:
                continue
            config = PlatformConfig(name=platform_id, triple=triple)
            platforms.append(RegularPlatform(platform_id, config, toolchain, self.backend))
        return platforms
