"""Build platforms."""

from dinghy.platforms.base import Platform, PlatformKind, strip_runnable
from dinghy.platforms.host import HOST_PLATFORM_ID, HostPlatform
from dinghy.platforms.ios import IosPlatform
from dinghy.platforms.regular import RegularPlatform

__all__ = [
    "HOST_PLATFORM_ID",
    "HostPlatform",
    "IosPlatform",
    "Platform",
    "PlatformKind",
    "RegularPlatform",
    "strip_runnable",
]
