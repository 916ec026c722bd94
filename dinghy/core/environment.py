"""
Build environment table for Dinghy.

The external build tool is steered through environment variables (compiler,
linker and pkg-config redirection). Instead of mutating ``os.environ`` as the
build is prepared, every Platform build collects its variables in a
BuildEnvironment, which is then handed to the build subprocess as ``env=``.

Usage:
    from dinghy.core.environment import BuildEnvironment

    env = BuildEnvironment()
    env.clear(["LD_LIBRARY_PATH"])
    env.set_target("PKG_CONFIG_SYSROOT_DIR", "aarch64-linux-android", "/sysroot")
    subprocess.run(["cargo", "build"], env=env.to_environ())
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

logger = logging.getLogger(__name__)

# Keys wiped before every platform build so nothing leaks between targets
CLEARED_KEYS = ("LIBRARY_PATH", "LD_LIBRARY_PATH")

EnvValue = Union[str, Path]


def envify(name: str) -> str:
    """
    Turn an arbitrary name into an environment variable name fragment.

    Example:
        >>> envify("aarch64-linux-android")
        'AARCH64_LINUX_ANDROID'
    """
    return name.upper().replace("-", "_").replace(".", "_")


def target_key(key: str, triple: Optional[str]) -> str:
    """
    Qualify a variable name with a target triple.

    Example:
        >>> target_key("PKG_CONFIG_LIBDIR", "armv7-linux-androideabi")
        'PKG_CONFIG_LIBDIR_armv7_linux_androideabi'
    """
    if triple is None:
        return key
    return f"{key}_{triple.replace('-', '_')}"


class BuildEnvironment:
    """
    Environment variable table for one platform build.

    Starts from a snapshot of a base environment (``os.environ`` by default)
    and records every override made while preparing the build.
    """

    def __init__(self, base: Optional[Mapping[str, str]] = None):
        self._base: Dict[str, str] = dict(os.environ if base is None else base)
        self._overrides: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        if key in self._overrides:
            return self._overrides[key]
        return self._base.get(key)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @property
    def overrides(self) -> Dict[str, str]:
        """Variables set on top of the base environment."""
        return dict(self._overrides)

    def set(self, key: str, value: EnvValue) -> None:
        logger.debug(f"Setting environment variable {key}='{value}'")
        self._overrides[key] = str(value)

    def set_if_undefined(self, key: str, value: EnvValue) -> None:
        if key in self:
            logger.debug(f"Environment variable {key} already defined, keeping it")
            return
        self.set(key, value)

    def set_all(self, values: Mapping[str, EnvValue]) -> None:
        for key, value in values.items():
            self.set(key, value)

    def clear(self, keys: Iterable[str] = CLEARED_KEYS) -> None:
        """Reset the given keys to empty values."""
        for key in keys:
            self.set(key, "")

    def set_target(self, key: str, triple: Optional[str], value: EnvValue) -> None:
        self.set(target_key(key, triple), value)

    def append_path(self, key: str, value: EnvValue) -> None:
        current = self.get(key)
        if current:
            self.set(key, f"{current}{os.pathsep}{value}")
        else:
            self.set(key, value)

    def prepend_path(self, key: str, value: EnvValue) -> None:
        current = self.get(key)
        if current:
            self.set(key, f"{value}{os.pathsep}{current}")
        else:
            self.set(key, value)

    def append_target_path(
        self, key: str, triple: Optional[str], value: EnvValue
    ) -> None:
        self.append_path(target_key(key, triple), value)

    def to_environ(self) -> Dict[str, str]:
        """Full environment mapping, suitable for ``subprocess.run(env=...)``."""
        environ = dict(self._base)
        environ.update(self._overrides)
        return environ

    @contextmanager
    def applied(self) -> Iterator["BuildEnvironment"]:
        """
        Install the overrides into ``os.environ`` for the duration of the block.

        Previous values are restored (or removed) on exit, even on error.
        """
        saved = {key: os.environ.get(key) for key in self._overrides}
        try:
            os.environ.update(self._overrides)
            yield self
        finally:
            for key, previous in saved.items():
                if previous is None:
                    os.environ.pop(key, None)
                else:
                    os.environ[key] = previous


__all__ = [
    "CLEARED_KEYS",
    "BuildEnvironment",
    "envify",
    "target_key",
]
