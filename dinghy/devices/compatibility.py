"""
Device / platform compatibility table.

Compatibility is looked up by (device kind, platform kind); a pair missing
from the table is incompatible. Both ``Device.is_compatible_with`` and
``Platform.is_compatible_with`` go through ``is_compatible``.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Tuple

from dinghy.devices.base import Device, DeviceKind
from dinghy.platforms.base import PlatformKind

if TYPE_CHECKING:
    from dinghy.platforms.base import Platform

Predicate = Callable[[Device, "Platform"], bool]


def _host_with_host(device, platform) -> bool:
    return True


def _triple_supported(device, platform) -> bool:
    return platform.triple is not None and platform.triple in device.supported_triples


def _ssh_with_regular(device, platform) -> bool:
    if device.platform_name is not None:
        return device.platform_name == platform.id
    if device.toolchain is not None:
        toolchain_root = getattr(platform, "toolchain_root", None)
        return toolchain_root is not None and Path(device.toolchain) == toolchain_root
    return False


def _ios_with_ios(device, platform) -> bool:
    return platform.sim and _triple_supported(device, platform)


COMPATIBILITY: Dict[Tuple[DeviceKind, PlatformKind], Predicate] = {
    (DeviceKind.HOST, PlatformKind.HOST): _host_with_host,
    (DeviceKind.ANDROID, PlatformKind.REGULAR): _triple_supported,
    (DeviceKind.SSH, PlatformKind.REGULAR): _ssh_with_regular,
    (DeviceKind.IOS, PlatformKind.IOS): _ios_with_ios,
}


def is_compatible(device: Device, platform: "Platform") -> bool:
    predicate = COMPATIBILITY.get((device.kind, platform.kind))
    if predicate is None:
        return False
    return predicate(device, platform)
