"""
iOS simulators, driven through ``xcrun simctl``.

Simulators share the host filesystem, so bundles run in place.
"""

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from dinghy.core.exceptions import AppFailedError, ProbeUnavailableError, TransportError
from dinghy.core.filesystem import safe_rmtree
from dinghy.core.host import detect_host
from dinghy.devices.base import (
    MARKER_VARIABLE,
    BuildBundle,
    Device,
    DeviceKind,
    PlatformManager,
    run_transport,
)

logger = logging.getLogger(__name__)

SIMCTL_CHILD_PREFIX = "SIMCTL_CHILD_"


def simulator_triples(arch: str) -> Tuple[str, ...]:
    if arch == "aarch64":
        return ("aarch64-apple-ios-sim",)
    return ("x86_64-apple-ios",)


def parse_simctl_devices(output: str) -> List[Tuple[str, str]]:
    """(udid, name) of every booted simulator in ``simctl list --json`` output."""
    data = json.loads(output or "{}")
    booted = []
    for runtime_devices in data.get("devices", {}).values():
        for device in runtime_devices:
            if device.get("state") == "Booted":
                booted.append((device["udid"], device.get("name", device["udid"])))
    return booted


class IosSimulatorDevice(Device):
    kind = DeviceKind.IOS

    def __init__(self, udid: str, name: str, triples: Sequence[str]):
        self.udid = udid
        self._name = name
        self._triples = tuple(triples)

    @property
    def id(self) -> str:
        return self.udid

    @property
    def name(self) -> str:
        return self._name

    @property
    def supported_triples(self) -> Tuple[str, ...]:
        return self._triples

    def install_app(self, bundle: BuildBundle) -> BuildBundle:
        return bundle

    def run_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        environ = dict(os.environ)
        environ[f"{SIMCTL_CHILD_PREFIX}{MARKER_VARIABLE}"] = "1"
        for key, value in (envs or {}).items():
            environ[f"{SIMCTL_CHILD_PREFIX}{key}"] = str(value)

        cmd = ["xcrun", "simctl", "spawn", self.udid, str(bundle.bundle_exe), *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, cwd=Path(bundle.bundle_dir), env=environ)
        except OSError as e:
            raise TransportError(f"Couldn't run xcrun: {e}", cmd) from e
        if result.returncode != 0:
            raise AppFailedError(self.id, result.returncode)

    def clean_app(self, bundle: BuildBundle) -> None:
        safe_rmtree(bundle.bundle_dir)

    def describe(self) -> str:
        return f"ios simulator {self.name} ({self.udid})"


class IosManager(PlatformManager):
    name = "ios"

    @classmethod
    def probe(cls) -> "IosManager":
        if not detect_host().is_macos:
            raise ProbeUnavailableError("not running on macOS, ios disabled")
        if shutil.which("xcrun") is None:
            raise ProbeUnavailableError("xcrun not found in path, ios disabled")
        return cls()

    def devices(self) -> List[Device]:
        result = run_transport(
            ["xcrun", "simctl", "list", "devices", "booted", "--json"],
            "Couldn't list iOS simulators",
            capture=True,
        )
        triples = simulator_triples(detect_host().arch)
        try:
            booted = parse_simctl_devices(result.stdout)
        except (ValueError, KeyError) as e:
            raise TransportError(f"Unexpected simctl output: {e}") from e
        return [IosSimulatorDevice(udid, name, triples) for udid, name in booted]
