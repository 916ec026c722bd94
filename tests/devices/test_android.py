"""
Tests for Android devices and NDK discovery.
"""

from unittest.mock import patch

import pytest

from dinghy.backends.base import Runnable
from dinghy.config.parser import AndroidConfig, DinghyConfig, PlatformConfig
from dinghy.core.exceptions import (
    AppFailedError,
    ProbeUnavailableError,
    TransportError,
    UnsupportedOperationError,
)
from dinghy.devices.android import (
    ANDROID_PREFIX,
    AndroidDevice,
    AndroidManager,
    auto_platform_id,
    find_adb,
    find_ndk,
    map_abi_list,
    ndk_prebuilt,
    ndk_toolchain,
    parse_devices_output,
)
from dinghy.devices.base import BuildBundle

RUN = "dinghy.devices.base.subprocess.run"


@pytest.fixture
def device():
    return AndroidDevice("/sdk/adb", "emulator-5554", ["aarch64-linux-android"])


@pytest.fixture
def bundle(tmp_path):
    return BuildBundle.for_runnable(Runnable("app", tmp_path / "debug" / "app", tmp_path))


@pytest.fixture
def ndk(tmp_path):
    """NDK with an LLVM prebuilt toolchain for aarch64 only."""
    root = tmp_path / "ndk"
    bin_dir = root / "toolchains" / "llvm" / "prebuilt" / "linux-x86_64" / "bin"
    bin_dir.mkdir(parents=True)
    (bin_dir / "aarch64-linux-android21-clang").write_text("")
    (bin_dir / "llvm-strip").write_text("")
    return root


class TestAbiMapping:
    """Test ABI to triple mapping."""

    def test_order_is_preserved(self):
        assert map_abi_list("x86,arm64-v8a") == [
            "i686-linux-android",
            "aarch64-linux-android",
        ]

    def test_unknown_dropped(self):
        assert map_abi_list("arm64-v8a,mips,armeabi-v7a,armeabi\n") == [
            "aarch64-linux-android",
            "armv7-linux-androideabi",
            "arm-linux-androideabi",
        ]

    def test_iterable(self):
        assert map_abi_list(["armeabi-v7a"]) == ["armv7-linux-androideabi"]

    def test_empty(self):
        assert map_abi_list("") == []


class TestParseDevices:
    """Test ``adb devices`` parsing."""

    def test_devices(self):
        output = (
            "List of devices attached\n"
            "emulator-5554\tdevice\n"
            "0123456789\tunauthorized\n"
            "R58M\tdevice\r\n"
            "\n"
        )
        assert parse_devices_output(output) == ["emulator-5554", "R58M"]

    def test_header_only(self):
        assert parse_devices_output("List of devices attached\n\n") == []


class TestFindAdb:
    """Test adb discovery."""

    def test_on_path(self):
        with patch("dinghy.devices.android.shutil.which", return_value="/usr/bin/adb"):
            assert find_adb() == "/usr/bin/adb"

    def test_macos_location(self, tmp_path):
        adb = tmp_path / "Library" / "Android" / "sdk" / "platform-tools" / "adb"
        adb.parent.mkdir(parents=True)
        adb.write_text("")
        adb.chmod(0o755)
        with patch("dinghy.devices.android.shutil.which", return_value=None):
            assert find_adb(home=tmp_path) == str(adb)

    def test_missing(self, tmp_path):
        with patch("dinghy.devices.android.shutil.which", return_value=None):
            with pytest.raises(ProbeUnavailableError, match="android disabled"):
                find_adb(home=tmp_path)


class TestAndroidDevice:
    """Test install, run and clean over adb."""

    def test_from_id(self, make_completed):
        with patch(RUN, return_value=make_completed(stdout="arm64-v8a,armeabi-v7a\n")) as run:
            device = AndroidDevice.from_id("adb", "emu")

        assert run.call_args[0][0] == [
            "adb", "-s", "emu", "shell", "getprop", "ro.product.cpu.abilist"
        ]
        assert device.id == "emu"
        assert device.supported_triples == (
            "aarch64-linux-android",
            "armv7-linux-androideabi",
        )

    def test_install(self, device, bundle, make_completed):
        with patch(RUN, return_value=make_completed()) as run:
            remote = device.install_app(bundle)

        commands = [c[0][0] for c in run.call_args_list]
        remote_dir = str(ANDROID_PREFIX / "app")
        assert commands == [
            ["/sdk/adb", "-s", "emulator-5554", "shell", "rm", "-rf", remote_dir],
            ["/sdk/adb", "-s", "emulator-5554", "push", str(bundle.bundle_dir), remote_dir],
            ["/sdk/adb", "-s", "emulator-5554", "shell", "chmod", "755", f"{remote_dir}/app"],
        ]
        assert remote.root_dir == ANDROID_PREFIX

    def test_install_ignores_failed_removal(self, device, bundle, make_completed):
        results = [make_completed(returncode=1), make_completed(), make_completed()]
        with patch(RUN, side_effect=results):
            device.install_app(bundle)

    def test_push_failure(self, device, bundle, make_completed):
        results = [make_completed(), make_completed(returncode=1)]
        with patch(RUN, side_effect=results):
            with pytest.raises(TransportError, match="Couldn't push"):
                device.install_app(bundle)

    def test_run(self, device, bundle, make_completed):
        with patch(RUN, return_value=make_completed()) as run:
            device.run_app(bundle, ["--bench"], {"RUST_LOG": "info"})

        cmd = run.call_args[0][0]
        assert cmd[:4] == ["/sdk/adb", "-s", "emulator-5554", "shell"]
        line = cmd[4]
        assert line.startswith("cd /data/local/tmp/dinghy/app ; DINGHY=1 RUST_LOG=info")
        assert 'LD_LIBRARY_PATH=/data/local/tmp/dinghy/app:"$LD_LIBRARY_PATH"' in line
        assert line.endswith("/data/local/tmp/dinghy/app/app --bench")

    def test_run_failure(self, device, bundle, make_completed):
        with patch(RUN, return_value=make_completed(returncode=101)):
            with pytest.raises(AppFailedError) as excinfo:
                device.run_app(bundle)
        assert excinfo.value.returncode == 101

    def test_clean(self, device, bundle, make_completed):
        with patch(RUN, return_value=make_completed()) as run:
            device.clean_app(bundle)
        assert run.call_args[0][0][-3:] == ["rm", "-rf", "/data/local/tmp/dinghy/app"]

    def test_debug_unsupported(self, device, bundle):
        with pytest.raises(UnsupportedOperationError):
            device.debug_app(bundle)


class TestNdk:
    """Test NDK discovery and auto platforms."""

    def test_find_ndk_from_environment(self, ndk, tmp_path):
        assert find_ndk({"ANDROID_NDK_HOME": str(ndk)}, home=tmp_path) == ndk

    def test_find_ndk_from_sdk(self, tmp_path):
        bundle = tmp_path / "sdk" / "ndk-bundle"
        bundle.mkdir(parents=True)
        assert find_ndk({"ANDROID_SDK_ROOT": str(tmp_path / "sdk")}, home=tmp_path) == bundle

    def test_find_ndk_missing(self, tmp_path):
        assert find_ndk({}, home=tmp_path) is None

    def test_prebuilt(self, ndk):
        prebuilt = ndk_prebuilt(ndk)
        assert prebuilt.name == "linux-x86_64"
        assert ndk_prebuilt(ndk / "missing") is None

    def test_toolchain(self, ndk, tmp_path):
        prebuilt = ndk_prebuilt(ndk)

        toolchain = ndk_toolchain(prebuilt, "aarch64-linux-android", 21, tmp_path / "s")

        assert toolchain.cc_executable().name == "aarch64-linux-android21-clang"
        assert toolchain.binutils_executable("strip").name == "llvm-strip"
        assert toolchain.sysroot == prebuilt / "sysroot"

    def test_toolchain_without_compiler(self, ndk, tmp_path):
        prebuilt = ndk_prebuilt(ndk)
        assert ndk_toolchain(prebuilt, "armv7-linux-androideabi", 21, tmp_path) is None
        assert ndk_toolchain(prebuilt, "arm-linux-androideabi", 21, tmp_path) is None

    def test_auto_platform_id(self):
        assert auto_platform_id("armv7-linux-androideabi") == "auto-android-armv7"


class TestAndroidManager:
    """Test device listing and NDK platforms."""

    def test_probe_without_adb(self):
        with patch("dinghy.devices.android.find_adb", side_effect=ProbeUnavailableError("no")):
            with pytest.raises(ProbeUnavailableError):
                AndroidManager.probe()

    def test_devices(self, make_completed):
        listing = make_completed(stdout="List of devices attached\nemu\tdevice\n")
        abis = make_completed(stdout="x86\n")
        with patch(RUN, side_effect=[listing, abis]):
            devices = AndroidManager("adb").devices()

        assert [d.id for d in devices] == ["emu"]
        assert devices[0].supported_triples == ("i686-linux-android",)

    def test_unreachable_device_skipped(self, make_completed, caplog):
        listing = make_completed(stdout="List of devices attached\nbad\tdevice\nemu\tdevice\n")
        failed = make_completed(returncode=1)
        abis = make_completed(stdout="arm64-v8a\n")
        with patch(RUN, side_effect=[listing, failed, abis]):
            devices = AndroidManager("adb").devices()

        assert [d.id for d in devices] == ["emu"]
        assert "Ignoring android device bad" in caplog.text

    def test_platforms(self, ndk, project, fake_backend, monkeypatch):
        monkeypatch.setenv("ANDROID_NDK_HOME", str(ndk))
        manager = AndroidManager("adb", DinghyConfig(), project, fake_backend)

        platforms = manager.platforms()

        assert [p.id for p in platforms] == ["auto-android-aarch64"]
        assert platforms[0].triple == "aarch64-linux-android"

    def test_configured_platform_not_duplicated(self, ndk, project, fake_backend, monkeypatch):
        monkeypatch.setenv("ANDROID_NDK_HOME", str(ndk))
        config = DinghyConfig(
            platforms={
                "auto-android-aarch64": PlatformConfig(
                    name="auto-android-aarch64",
                    triple="aarch64-linux-android",
                    toolchain="/x",
                )
            },
            android=AndroidConfig(),
        )

        assert AndroidManager("adb", config, project, fake_backend).platforms() == []

    def test_no_platforms_without_project(self):
        assert AndroidManager("adb").platforms() == []
