"""
Dinghy orchestrator.

Probes every platform manager, collects the available platforms and devices
and matches a requested target to a (platform, device) pair before anything
gets built.

Usage:
    from dinghy.orchestrator import Dinghy

    dinghy = Dinghy.probe(config, project)
    platform, device = dinghy.select(device_filter="pi")
    build = platform.build(project, BuildArgs())
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from dinghy.backends.base import BuildBackend
from dinghy.backends.cargo import CargoBackend
from dinghy.config.parser import DinghyConfig
from dinghy.core.exceptions import (
    CompatibilityMismatchError,
    DinghyError,
    ProbeUnavailableError,
    ToolchainError,
)
from dinghy.core.host import detect_host
from dinghy.devices.android import AndroidManager
from dinghy.devices.base import Device, PlatformManager
from dinghy.devices.host import HostManager
from dinghy.devices.ios import IosManager
from dinghy.devices.ssh import SshManager
from dinghy.platforms.base import Platform
from dinghy.platforms.host import HOST_PLATFORM_ID, HostPlatform
from dinghy.platforms.ios import IosPlatform
from dinghy.platforms.regular import RegularPlatform
from dinghy.project import Project

logger = logging.getLogger(__name__)

# Discovery backends such as the adb daemon may under-report right after start
SETTLE_DELAY = 0.1


class Dinghy:
    """
    Discovered platforms and devices.

    Args:
        platforms: Available platforms, host platform first
        managers: Managers that probed successfully
        preferred_triples: Triples tried first when choosing a platform for a
            device
    """

    def __init__(
        self,
        platforms: List[Platform],
        managers: List[PlatformManager],
        preferred_triples: Optional[List[str]] = None,
    ):
        self._platforms = platforms
        self._managers = managers
        self.preferred_triples = list(preferred_triples or [])
        self._devices: Optional[List[Device]] = None

    @classmethod
    def probe(
        cls,
        config: DinghyConfig,
        project: Project,
        backend: Optional[BuildBackend] = None,
    ) -> "Dinghy":
        """
        Probe managers concurrently and build the configured platforms.

        Managers whose tooling is missing are skipped.
        """
        backend = backend or CargoBackend()
        probes: List[Tuple[str, Callable[[], PlatformManager]]] = [
            ("android", lambda: AndroidManager.probe(config, project, backend)),
            ("ssh", lambda: SshManager.probe(config)),
            ("ios", IosManager.probe),
        ]

        managers: List[PlatformManager] = []
        with ThreadPoolExecutor(max_workers=len(probes)) as executor:
            futures = [(name, executor.submit(probe)) for name, probe in probes]
            for name, future in futures:
                try:
                    managers.append(future.result())
                except ProbeUnavailableError as e:
                    logger.info(f"{name}: {e}")
        managers.append(HostManager())

        platforms = configured_platforms(config, project, backend)
        known = {p.id for p in platforms}
        for manager in managers:
            for platform in manager.platforms():
                if platform.id not in known:
                    platforms.append(platform)
                    known.add(platform.id)

        time.sleep(SETTLE_DELAY)
        return cls(platforms, managers, config.android.preferred_triples)

    def platforms(self) -> List[Platform]:
        return list(self._platforms)

    def devices(self) -> List[Device]:
        if self._devices is None:
            devices = []
            for manager in self._managers:
                try:
                    devices.extend(manager.devices())
                except DinghyError as e:
                    logger.warning(f"Couldn't list {manager.name} devices: {e}")
            self._devices = devices
        return list(self._devices)

    def platform_by_name(self, name: str) -> Optional[Platform]:
        for platform in self._platforms:
            if platform.id == name:
                return platform
        return None

    def host_platform(self) -> Platform:
        platform = self.platform_by_name(HOST_PLATFORM_ID)
        if platform is None:
            raise CompatibilityMismatchError("No host platform available")
        return platform

    def compatible_devices(self, platform: Platform) -> List[Device]:
        return [d for d in self.devices() if platform.is_compatible_with(d)]

    def compatible_platforms(self, device: Device) -> List[Platform]:
        """Platforms able to target device, preferred triples first."""
        compatible = [p for p in self._platforms if device.is_compatible_with(p)]

        def rank(platform: Platform) -> int:
            if platform.triple in self.preferred_triples:
                return self.preferred_triples.index(platform.triple)
            return len(self.preferred_triples)

        return sorted(compatible, key=rank)

    def find_devices(self, device_filter: str) -> List[Device]:
        needle = device_filter.lower()
        return [
            d
            for d in self.devices()
            if needle in d.id.lower() or needle in d.name.lower()
        ]

    def select(
        self,
        platform_name: Optional[str] = None,
        device_filter: Optional[str] = None,
    ) -> Tuple[Platform, Device]:
        """
        Match a request to a platform and a device.

        Raises:
            CompatibilityMismatchError: If nothing matches
        """
        platform = None
        if platform_name is not None:
            platform = self.platform_by_name(platform_name)
            if platform is None:
                raise CompatibilityMismatchError(f"No platform named {platform_name}")

        if device_filter is not None:
            candidates = self.find_devices(device_filter)
            if not candidates:
                raise CompatibilityMismatchError(f"No device matching {device_filter}")
        elif platform is not None:
            candidates = self.devices()
        else:
            platform = self.host_platform()
            candidates = [d for d in self.devices() if d.id == "host"]

        for device in candidates:
            if platform is not None:
                if platform.is_compatible_with(device):
                    return platform, device
                continue
            compatible = self.compatible_platforms(device)
            if compatible:
                return compatible[0], device

        target = platform.id if platform is not None else "any platform"
        raise CompatibilityMismatchError(
            f"No device compatible with {target}"
            + (f" matching {device_filter}" if device_filter else "")
        )


def configured_platforms(
    config: DinghyConfig, project: Project, backend: BuildBackend
) -> List[Platform]:
    """
    Build the host platform and every configured platform.

    Platforms whose toolchain is unusable are skipped with a warning.
    """
    platforms: List[Platform] = []
    host_config = config.platforms.get(HOST_PLATFORM_ID)
    platforms.append(HostPlatform(backend, host_config))

    host = detect_host()
    for name, platform_config in config.platforms.items():
        if name == HOST_PLATFORM_ID:
            continue
        triple = platform_config.triple
        try:
            if triple is None:
                platforms.append(HostPlatform(backend, platform_config, name))
            elif platform_config.is_ios:
                if not host.is_macos:
                    logger.info(f"Skipping iOS platform {name}: requires a macOS host")
                    continue
                platforms.append(
                    IosPlatform(
                        name, triple, platform_config, backend, project.shim_dir(triple, name)
                    )
                )
            else:
                platforms.append(
                    RegularPlatform.from_config(name, platform_config, project, backend)
                )
        except ToolchainError as e:
            logger.warning(f"Skipping platform {name}: {e}")
    return platforms
