"""YAML configuration parser for Dinghy.

Configuration lives in ``.dinghy.yml`` files. Every ancestor directory of the
project may hold one, as may the user's home directory; files nearer to the
project take precedence over files further up the tree.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dinghy.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (".dinghy.yml", ".dinghy.yaml")

# Keys merged entry by entry, nearest file winning
_MAPPING_SECTIONS = ("platforms", "ssh_devices", "android")

DEFAULT_ANDROID_TRIPLES = ["armv7-linux-androideabi"]
DEFAULT_ANDROID_API_LEVEL = 21


@dataclass
class OverlayConfig:
    """Explicitly declared overlay directory."""

    path: str


@dataclass
class PlatformConfig:
    """Configuration for a single named platform."""

    name: str
    triple: Optional[str] = None  # None means the host platform
    toolchain: Optional[str] = None
    deb_multiarch: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    overlays: Dict[str, OverlayConfig] = field(default_factory=dict)

    @property
    def is_ios(self) -> bool:
        return bool(self.triple) and (
            self.triple.endswith("-ios") or self.triple.endswith("-ios-sim")
        )


@dataclass
class SshDeviceConfig:
    """Configuration for a device reached over ssh."""

    name: str
    hostname: str
    username: str
    port: Optional[int] = None
    path: Optional[str] = None  # remote prefix, /tmp when unset
    toolchain: Optional[str] = None
    platform: Optional[str] = None


@dataclass
class TestDataConfig:
    """Data copied next to the program in every bundle."""

    __test__ = False  # not a pytest test class

    id: str
    source: str
    base: Path  # configuration file declaring the entry
    copy_git_ignored: bool = False

    @property
    def target(self) -> str:
        return self.id

    def source_path(self) -> Path:
        return self.base.parent / self.source


@dataclass
class AndroidConfig:
    """Android discovery preferences."""

    preferred_triples: List[str] = field(
        default_factory=lambda: list(DEFAULT_ANDROID_TRIPLES)
    )
    api_level: int = DEFAULT_ANDROID_API_LEVEL


@dataclass
class DinghyConfig:
    """Complete merged Dinghy configuration."""

    platforms: Dict[str, PlatformConfig] = field(default_factory=dict)
    ssh_devices: Dict[str, SshDeviceConfig] = field(default_factory=dict)
    test_data: List[TestDataConfig] = field(default_factory=list)
    android: AndroidConfig = field(default_factory=AndroidConfig)
    files: List[Path] = field(default_factory=list)


# ============================================================================
# Loading
# ============================================================================


def discover_config_files(start: Path, home: Optional[Path] = None) -> List[Path]:
    """
    Find configuration files from start upward, then in home.

    Args:
        start: Directory to start from (usually the project root)
        home: Home directory (defaults to Path.home())

    Returns:
        Existing configuration files, nearest first
    """
    found: List[Path] = []
    directories = [start.resolve(), *start.resolve().parents]
    home = (home or Path.home()).resolve()
    if home not in directories:
        directories.append(home)

    for directory in directories:
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                found.append(candidate)
                break
    return found


def load_config(
    project_root: Path,
    explicit: Optional[Path] = None,
    home: Optional[Path] = None,
) -> DinghyConfig:
    """
    Load and merge every configuration file applying to a project.

    Args:
        project_root: Project root directory
        explicit: Optional configuration file given on the command line; it
            takes precedence over discovered files
        home: Home directory override (for testing)

    Returns:
        Merged configuration (empty configuration if no file exists)

    Raises:
        ConfigError: If a file is missing, unreadable or invalid
    """
    files: List[Path] = []
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError(f"Configuration file not found: {explicit}")
        files.append(explicit.resolve())
    for path in discover_config_files(project_root, home):
        if path not in files:
            files.append(path)

    merged: Dict[str, Any] = {}
    # Farthest first so nearer files overwrite
    for path in reversed(files):
        logger.debug(f"Loading configuration from {path}")
        merged = _merge(merged, _read_file(path))

    config = _parse_and_validate(merged)
    config.files = files
    return config


def parse_config(config_path: Path) -> DinghyConfig:
    """
    Parse a single configuration file.

    Raises:
        ConfigError: If configuration is invalid
    """
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    config = _parse_and_validate(_read_file(config_path))
    config.files = [config_path]
    return config


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Couldn't read configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    test_data = data.get("test_data", [])
    if not isinstance(test_data, list):
        raise ConfigError(f"test_data must be a list in {path}")
    for entry in test_data:
        if isinstance(entry, dict):
            entry["_base"] = path
    return data


def _merge(farther: Dict[str, Any], nearer: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(farther)
    for section in _MAPPING_SECTIONS:
        if section in nearer:
            value = nearer[section]
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigError(f"{section} must be a mapping")
            combined = dict(merged.get(section) or {})
            combined.update(value)
            merged[section] = combined
    if nearer.get("test_data"):
        merged["test_data"] = list(nearer["test_data"]) + list(
            merged.get("test_data") or []
        )
    return merged


# ============================================================================
# Parsing
# ============================================================================


def _parse_and_validate(data: Dict[str, Any]) -> DinghyConfig:
    platforms = {
        name: _parse_platform(name, conf)
        for name, conf in (data.get("platforms") or {}).items()
    }
    ssh_devices = {
        name: _parse_ssh_device(name, conf)
        for name, conf in (data.get("ssh_devices") or {}).items()
    }
    for device in ssh_devices.values():
        if device.platform and device.platform not in platforms:
            logger.debug(
                f"ssh device {device.name} references platform {device.platform} "
                "which is not configured"
            )
    test_data = [_parse_test_data(entry) for entry in data.get("test_data") or []]
    android = _parse_android(data.get("android") or {})

    return DinghyConfig(
        platforms=platforms,
        ssh_devices=ssh_devices,
        test_data=test_data,
        android=android,
    )


def _parse_platform(name: str, data: Any) -> PlatformConfig:
    """Parse platform configuration."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Platform {name} must be a mapping")

    env = data.get("env") or {}
    if not isinstance(env, dict):
        raise ConfigError(f"platforms.{name}.env must be a dictionary")

    overlays = {}
    for overlay_id, overlay in (data.get("overlays") or {}).items():
        if not isinstance(overlay, dict) or "path" not in overlay:
            raise ConfigError(
                f"platforms.{name}.overlays.{overlay_id} must define a path"
            )
        overlays[str(overlay_id)] = OverlayConfig(path=str(overlay["path"]))

    platform = PlatformConfig(
        name=name,
        triple=data.get("triple"),
        toolchain=data.get("toolchain"),
        deb_multiarch=data.get("deb_multiarch"),
        env={str(k): str(v) for k, v in env.items()},
        overlays=overlays,
    )

    if platform.triple and not platform.is_ios:
        if platform.toolchain and platform.deb_multiarch:
            raise ConfigError(
                f"Platform {name} defines both toolchain and deb_multiarch"
            )
        if not platform.toolchain and not platform.deb_multiarch:
            raise ConfigError(f"Toolchain missing for platform {name}")

    return platform


def _parse_ssh_device(name: str, data: Any) -> SshDeviceConfig:
    """Parse ssh device configuration."""
    if not isinstance(data, dict):
        raise ConfigError(f"ssh device {name} must be a mapping")
    for field_name in ("hostname", "username"):
        if not data.get(field_name):
            raise ConfigError(f"ssh device {name} missing required field: {field_name}")

    port = data.get("port")
    if port is not None:
        try:
            port = int(port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"ssh device {name} has invalid port: {port}") from e

    return SshDeviceConfig(
        name=name,
        hostname=str(data["hostname"]),
        username=str(data["username"]),
        port=port,
        path=data.get("path"),
        toolchain=data.get("toolchain"),
        platform=data.get("platform"),
    )


def _parse_test_data(data: Any) -> TestDataConfig:
    if not isinstance(data, dict):
        raise ConfigError("test_data entries must be mappings")
    for field_name in ("id", "source"):
        if field_name not in data:
            raise ConfigError(f"test_data entry missing required field: {field_name}")
    return TestDataConfig(
        id=str(data["id"]),
        source=str(data["source"]),
        base=Path(data.get("_base") or Path.cwd() / CONFIG_FILE_NAMES[0]),
        copy_git_ignored=bool(data.get("copy_git_ignored", False)),
    )


def _parse_android(data: Dict[str, Any]) -> AndroidConfig:
    triples = data.get("preferred_triples", DEFAULT_ANDROID_TRIPLES)
    if isinstance(triples, str):
        triples = [triples]
    if not isinstance(triples, list):
        raise ConfigError("android.preferred_triples must be a list")
    try:
        api_level = int(data.get("api_level", DEFAULT_ANDROID_API_LEVEL))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"android.api_level must be an integer: {e}") from e
    return AndroidConfig(preferred_triples=[str(t) for t in triples], api_level=api_level)
