"""
The host itself as a device.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from dinghy.core.exceptions import AppFailedError, TransportError
from dinghy.core.filesystem import safe_rmtree
from dinghy.core.host import detect_host
from dinghy.devices.base import (
    MARKER_VARIABLE,
    BuildBundle,
    Device,
    DeviceKind,
    PlatformManager,
)

logger = logging.getLogger(__name__)

HOST_DEVICE_ID = "host"


class HostDevice(Device):
    """Runs bundles in place; installing is a no-op."""

    kind = DeviceKind.HOST

    @property
    def id(self) -> str:
        return HOST_DEVICE_ID

    @property
    def name(self) -> str:
        return f"{HOST_DEVICE_ID} ({detect_host().description()})"

    @property
    def supported_triples(self):
        return (detect_host().triple,)

    def install_app(self, bundle: BuildBundle) -> BuildBundle:
        return bundle

    def run_environment(
        self, bundle: BuildBundle, envs: Optional[Mapping[str, str]] = None
    ) -> dict:
        environ = dict(os.environ)
        environ[MARKER_VARIABLE] = "1"
        environ.update({k: str(v) for k, v in (envs or {}).items()})
        current = environ.get("LD_LIBRARY_PATH")
        lib_dir = str(bundle.lib_dir)
        environ["LD_LIBRARY_PATH"] = f"{lib_dir}{os.pathsep}{current}" if current else lib_dir
        return environ

    def run_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        cmd = [str(bundle.bundle_exe), *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd, cwd=Path(bundle.bundle_dir), env=self.run_environment(bundle, envs)
            )
        except OSError as e:
            raise TransportError(f"Couldn't run {bundle.bundle_exe}: {e}", cmd) from e
        if result.returncode != 0:
            raise AppFailedError(self.id, result.returncode)

    def clean_app(self, bundle: BuildBundle) -> None:
        logger.debug(f"Removing {bundle.bundle_dir}")
        safe_rmtree(bundle.bundle_dir)

    def describe(self) -> str:
        return self.name


class HostManager(PlatformManager):
    name = "host"

    def devices(self) -> List[Device]:
        return [HostDevice()]
