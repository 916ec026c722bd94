"""Devices and their discovery managers."""

from dinghy.devices.android import AndroidDevice, AndroidManager, map_abi_list
from dinghy.devices.base import (
    BuildBundle,
    Device,
    DeviceKind,
    PlatformManager,
    make_bundle,
)
from dinghy.devices.compatibility import is_compatible
from dinghy.devices.host import HostDevice, HostManager
from dinghy.devices.ios import IosManager, IosSimulatorDevice
from dinghy.devices.ssh import SshDevice, SshManager

__all__ = [
    "AndroidDevice",
    "AndroidManager",
    "BuildBundle",
    "Device",
    "DeviceKind",
    "HostDevice",
    "HostManager",
    "IosManager",
    "IosSimulatorDevice",
    "PlatformManager",
    "SshDevice",
    "SshManager",
    "is_compatible",
    "make_bundle",
    "map_abi_list",
]
