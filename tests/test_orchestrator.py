"""
Tests for platform and device discovery and selection.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from dinghy.config.parser import (
    AndroidConfig,
    DinghyConfig,
    PlatformConfig,
    SshDeviceConfig,
)
from dinghy.core.exceptions import (
    CompatibilityMismatchError,
    ProbeUnavailableError,
    TransportError,
)
from dinghy.core.host import HostInfo
from dinghy.devices.android import AndroidDevice
from dinghy.devices.base import PlatformManager
from dinghy.devices.host import HostDevice, HostManager
from dinghy.devices.ssh import SshDevice
from dinghy.orchestrator import Dinghy, configured_platforms
from dinghy.platforms.host import HostPlatform
from dinghy.platforms.regular import RegularPlatform
from dinghy.toolchain.toolchain import ToolchainConfig

LINUX = HostInfo("linux", "x86_64", "", "x86_64-unknown-linux-gnu")
MACOS = HostInfo("macos", "aarch64", "", "aarch64-apple-darwin")


class StaticManager(PlatformManager):
    """Manager returning fixed devices."""

    name = "static"

    def __init__(self, devices, platforms=()):
        self._devices = list(devices)
        self._platforms = list(platforms)

    def devices(self):
        return list(self._devices)

    def platforms(self):
        return list(self._platforms)


class BrokenManager(PlatformManager):
    name = "broken"

    def devices(self):
        raise TransportError("adb daemon died")


def regular(platform_id, triple, backend):
    toolchain = ToolchainConfig(triple=triple, shim_dir=Path("/s"), root=Path(f"/tc/{platform_id}"))
    return RegularPlatform(platform_id, PlatformConfig(name=platform_id, triple=triple), toolchain, backend)


@pytest.fixture
def android_setup(fake_backend):
    """Host, two android platforms, an ssh board and one android device."""
    platforms = [
        HostPlatform(fake_backend),
        regular("a64", "aarch64-linux-android", fake_backend),
        regular("v7", "armv7-linux-androideabi", fake_backend),
        regular("pi", "arm-unknown-linux-gnueabihf", fake_backend),
    ]
    phone = AndroidDevice(
        "adb", "R58M-phone", ["aarch64-linux-android", "armv7-linux-androideabi"]
    )
    board = SshDevice(SshDeviceConfig("raspi", "raspi.local", "pi", platform="pi"))
    managers = [StaticManager([phone, board]), HostManager()]
    return platforms, managers


class TestSelect:
    """Test Dinghy.select."""

    def test_default_is_host(self, android_setup):
        platforms, managers = android_setup
        dinghy = Dinghy(platforms, managers)

        platform, device = dinghy.select()

        assert platform.id == "host"
        assert isinstance(device, HostDevice)

    def test_preferred_triple_order(self, android_setup):
        platforms, managers = android_setup

        first = Dinghy(platforms, managers, ["armv7-linux-androideabi"])
        second = Dinghy(platforms, managers, ["aarch64-linux-android"])

        assert first.select(device_filter="r58m")[0].id == "v7"
        assert second.select(device_filter="r58m")[0].id == "a64"

    def test_no_preferred_triples_uses_discovery_order(self, android_setup):
        platforms, managers = android_setup

        dinghy = Dinghy(platforms, managers, [])

        assert dinghy.select(device_filter="r58m")[0].id == "a64"

    def test_by_platform(self, android_setup):
        platforms, managers = android_setup
        platform, device = Dinghy(platforms, managers).select(platform_name="pi")
        assert platform.id == "pi"
        assert device.id == "raspi"

    def test_platform_and_device(self, android_setup):
        platforms, managers = android_setup
        platform, device = Dinghy(platforms, managers).select("a64", "phone")
        assert (platform.id, device.id) == ("a64", "R58M-phone")

    def test_unknown_platform(self, android_setup):
        platforms, managers = android_setup
        with pytest.raises(CompatibilityMismatchError, match="No platform named"):
            Dinghy(platforms, managers).select(platform_name="nope")

    def test_unknown_device(self, android_setup):
        platforms, managers = android_setup
        with pytest.raises(CompatibilityMismatchError, match="No device matching"):
            Dinghy(platforms, managers).select(device_filter="iphone")

    def test_incompatible_pair(self, android_setup):
        platforms, managers = android_setup
        with pytest.raises(CompatibilityMismatchError, match="No device compatible"):
            Dinghy(platforms, managers).select("pi", "phone")


class TestDiscovery:
    """Test device and platform listing."""

    def test_devices_cached(self, android_setup):
        platforms, managers = android_setup
        dinghy = Dinghy(platforms, managers)
        assert dinghy.devices() == dinghy.devices()
        assert len(dinghy.devices()) == 3

    def test_broken_manager_is_skipped(self, fake_backend, caplog):
        dinghy = Dinghy([HostPlatform(fake_backend)], [BrokenManager(), HostManager()])

        assert [d.id for d in dinghy.devices()] == ["host"]
        assert "adb daemon died" in caplog.text

    def test_compatible_devices(self, android_setup):
        platforms, managers = android_setup
        dinghy = Dinghy(platforms, managers)
        a64 = dinghy.platform_by_name("a64")
        assert [d.id for d in dinghy.compatible_devices(a64)] == ["R58M-phone"]

    def test_find_devices_by_name(self, android_setup):
        platforms, managers = android_setup
        found = Dinghy(platforms, managers).find_devices("HOST")
        assert [d.id for d in found] == ["host"]

    def test_no_host_platform(self):
        with pytest.raises(CompatibilityMismatchError):
            Dinghy([], []).host_platform()


class TestConfiguredPlatforms:
    """Test configured_platforms."""

    def test_host_only(self, project, fake_backend):
        platforms = configured_platforms(DinghyConfig(), project, fake_backend)
        assert [p.id for p in platforms] == ["host"]

    def test_regular_and_skipped(self, project, fake_backend, gcc_toolchain, caplog):
        config = DinghyConfig(
            platforms={
                "host": PlatformConfig(name="host", env={"A": "1"}),
                "pi": PlatformConfig(
                    name="pi",
                    triple="armv7-unknown-linux-gnueabihf",
                    toolchain=str(gcc_toolchain),
                ),
                "broken": PlatformConfig(
                    name="broken",
                    triple="aarch64-unknown-linux-gnu",
                    toolchain=str(gcc_toolchain / "missing"),
                ),
                "native-release": PlatformConfig(name="native-release"),
            }
        )

        with patch("dinghy.orchestrator.detect_host", return_value=LINUX):
            platforms = configured_platforms(config, project, fake_backend)

        assert [p.id for p in platforms] == ["host", "pi", "native-release"]
        assert platforms[0].config.env == {"A": "1"}
        assert isinstance(platforms[2], HostPlatform)
        assert "Skipping platform broken" in caplog.text

    def test_ios_requires_macos(self, project, fake_backend):
        config = DinghyConfig(
            platforms={"sim": PlatformConfig(name="sim", triple="aarch64-apple-ios-sim")}
        )

        with patch("dinghy.orchestrator.detect_host", return_value=LINUX):
            assert [p.id for p in configured_platforms(config, project, fake_backend)] == ["host"]
        with patch("dinghy.orchestrator.detect_host", return_value=MACOS):
            assert [p.id for p in configured_platforms(config, project, fake_backend)] == [
                "host",
                "sim",
            ]


class TestProbe:
    """Test Dinghy.probe."""

    def test_unavailable_managers_skipped(self, project, fake_backend):
        unavailable = ProbeUnavailableError("missing")
        with patch(
            "dinghy.orchestrator.AndroidManager.probe", side_effect=unavailable
        ), patch("dinghy.orchestrator.SshManager.probe", side_effect=unavailable), patch(
            "dinghy.orchestrator.IosManager.probe", side_effect=unavailable
        ), patch("dinghy.orchestrator.time.sleep") as sleep:
            dinghy = Dinghy.probe(DinghyConfig(), project, fake_backend)

        sleep.assert_called_once()
        assert [p.id for p in dinghy.platforms()] == ["host"]
        assert [d.id for d in dinghy.devices()] == ["host"]

    def test_manager_platforms_added(self, project, fake_backend):
        extra = regular("auto-android-aarch64", "aarch64-linux-android", fake_backend)
        duplicate = HostPlatform(fake_backend)
        manager = StaticManager([], [extra, duplicate])
        unavailable = ProbeUnavailableError("missing")
        config = DinghyConfig(android=AndroidConfig(preferred_triples=["aarch64-linux-android"]))

        with patch(
            "dinghy.orchestrator.AndroidManager.probe", return_value=manager
        ), patch("dinghy.orchestrator.SshManager.probe", side_effect=unavailable), patch(
            "dinghy.orchestrator.IosManager.probe", side_effect=unavailable
        ), patch("dinghy.orchestrator.time.sleep"):
            dinghy = Dinghy.probe(config, project, fake_backend)

        assert [p.id for p in dinghy.platforms()] == ["host", "auto-android-aarch64"]
        assert dinghy.preferred_triples == ["aarch64-linux-android"]
