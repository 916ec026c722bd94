"""
Devices reached over ssh, with bundles copied by rsync.
"""

import logging
import shlex
import shutil
import sys
from pathlib import PurePath, PurePosixPath
from typing import List, Mapping, Optional, Sequence

from dinghy.config.parser import DinghyConfig, SshDeviceConfig
from dinghy.core.exceptions import AppFailedError, ProbeUnavailableError, TransportError
from dinghy.devices.base import (
    BuildBundle,
    Device,
    DeviceKind,
    PlatformManager,
    remote_command_line,
    run_transport,
)

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_PATH = "/tmp"
REMOTE_DIR_NAME = "dinghy"

# ssh exits with 255 when the connection itself fails
SSH_CONNECTION_FAILURE = 255


class SshDevice(Device):
    kind = DeviceKind.SSH

    def __init__(self, config: SshDeviceConfig):
        self.config = config

    @property
    def id(self) -> str:
        return self.config.name

    @property
    def platform_name(self) -> Optional[str]:
        return self.config.platform

    @property
    def toolchain(self) -> Optional[str]:
        return self.config.toolchain

    @property
    def destination(self) -> str:
        return f"{self.config.username}@{self.config.hostname}"

    @property
    def remote_prefix(self) -> PurePosixPath:
        return PurePosixPath(self.config.path or DEFAULT_REMOTE_PATH) / REMOTE_DIR_NAME

    def to_remote_bundle(self, bundle: BuildBundle) -> BuildBundle:
        return bundle.replace_prefix_with(self.remote_prefix)

    def ssh_command(self) -> List[str]:
        cmd = ["ssh", self.destination]
        if self.config.port is not None:
            cmd.extend(["-p", str(self.config.port)])
        if sys.stdout.isatty():
            cmd.extend(["-t", "-o", "LogLevel=QUIET"])
        return cmd

    def rsync_command(self, source: PurePath, destination: PurePath) -> List[str]:
        cmd = ["rsync", "-a", "-v"]
        if self.config.port is not None:
            cmd.extend(["-e", f"ssh -p {self.config.port}"])
        cmd.append(f"{source}/")
        cmd.append(f"{self.destination}:{destination.as_posix()}/")
        return cmd

    def rsync(self, source: PurePath, destination: PurePath) -> None:
        run_transport(
            self.rsync_command(source, destination),
            f"Couldn't rsync {source} to {self.id}",
            quiet=not logger.isEnabledFor(logging.DEBUG),
        )

    def install_app(self, bundle: BuildBundle) -> BuildBundle:
        remote = self.to_remote_bundle(bundle)
        run_transport(
            self.ssh_command()
            + ["mkdir", "-p", remote.bundle_dir.as_posix(), remote.lib_dir.as_posix()],
            f"Couldn't create {remote.bundle_dir} on {self.id}",
        )
        logger.info(f"Rsyncing {self.id}")
        self.rsync(bundle.bundle_dir, remote.bundle_dir)
        self.rsync(bundle.lib_dir, remote.lib_dir)
        return remote

    def run_app(
        self,
        bundle: BuildBundle,
        args: Sequence[str] = (),
        envs: Optional[Mapping[str, str]] = None,
    ) -> None:
        remote = self.to_remote_bundle(bundle)
        command = remote_command_line(remote, args, envs)
        logger.debug(f"Running {command}")
        cmd = self.ssh_command() + [command]
        result = run_transport(cmd, f"Couldn't run {remote.bundle_exe} on {self.id}", check=False)
        if result.returncode == SSH_CONNECTION_FAILURE:
            raise TransportError(f"Couldn't reach {self.destination}", cmd, result.returncode)
        if result.returncode != 0:
            raise AppFailedError(self.id, result.returncode)

    def clean_app(self, bundle: BuildBundle) -> None:
        remote = self.to_remote_bundle(bundle)
        run_transport(
            self.ssh_command() + [f"rm -rf {shlex.quote(remote.bundle_dir.as_posix())}"],
            f"Couldn't remove {remote.bundle_dir} from {self.id}",
        )

    def describe(self) -> str:
        port = self.config.port if self.config.port is not None else "none"
        return (
            f"ssh {self.id} (hostname: {self.config.hostname}, "
            f"username: {self.config.username}, port: {port})"
        )


class SshManager(PlatformManager):
    name = "ssh"

    def __init__(self, config: DinghyConfig):
        self.config = config

    @classmethod
    def probe(cls, config: DinghyConfig) -> "SshManager":
        if not config.ssh_devices:
            raise ProbeUnavailableError("no ssh device configured")
        if shutil.which("ssh") is None:
            raise ProbeUnavailableError("ssh not found in path, ssh devices disabled")
        return cls(config)

    def devices(self) -> List[Device]:
        return [SshDevice(conf) for conf in self.config.ssh_devices.values()]
