"""
Host detection for Dinghy.

Detects the machine Dinghy runs on (OS, CPU architecture, Linux
distribution) and derives the host target triple used by the host platform.

Usage:
    from dinghy.core.host import detect_host

    host = detect_host()
    print(host.triple)        # e.g. 'x86_64-unknown-linux-gnu'
    print(host.description()) # e.g. 'linux x86_64 (ubuntu 22.04)'
"""

import functools
import platform
from dataclasses import dataclass

import distro


@dataclass(frozen=True)
class HostInfo:
    """
    Host machine information.

    Attributes:
        os: Operating system ('linux', 'macos', 'windows')
        arch: CPU architecture using triple spelling ('x86_64', 'aarch64', 'i686', 'arm')
        distribution: Linux distribution id and version, empty elsewhere
        triple: Host target triple
    """

    os: str
    arch: str
    distribution: str
    triple: str

    @property
    def is_macos(self) -> bool:
        return self.os == "macos"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    def description(self) -> str:
        text = f"{self.os} {self.arch}"
        if self.distribution:
            text += f" ({self.distribution})"
        return text


@functools.lru_cache(maxsize=1)
def detect_host() -> HostInfo:
    """
    Detect host information.

    This function is cached - it only runs detection once per process.
    """
    os_name = _detect_os()
    arch = _detect_architecture()
    distribution = _detect_distribution() if os_name == "linux" else ""
    return HostInfo(
        os=os_name,
        arch=arch,
        distribution=distribution,
        triple=host_triple(os_name, arch),
    )


def host_triple(os_name: str, arch: str) -> str:
    """
    Build the triple of a host.

    Example:
        >>> host_triple("macos", "aarch64")
        'aarch64-apple-darwin'
    """
    if os_name == "macos":
        return f"{arch}-apple-darwin"
    if os_name == "windows":
        return f"{arch}-pc-windows-msvc"
    if arch == "arm":
        return "arm-unknown-linux-gnueabihf"
    return f"{arch}-unknown-linux-gnu"


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "darwin":
        return "macos"
    elif system == "linux":
        return "linux"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x86_64"
    elif machine in ("aarch64", "arm64"):
        return "aarch64"
    elif machine in ("i386", "i686", "x86"):
        return "i686"
    elif machine.startswith("arm"):
        return "arm"
    else:
        return machine


def _detect_distribution() -> str:
    name = distro.id()
    version = distro.version()
    if name and version:
        return f"{name} {version}"
    return name


def clear_host_cache():
    """Force the next detect_host() call to re-detect."""
    detect_host.cache_clear()


__all__ = [
    "HostInfo",
    "detect_host",
    "host_triple",
    "clear_host_cache",
]
