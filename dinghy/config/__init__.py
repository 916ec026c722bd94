"""Configuration loading for Dinghy."""

from dinghy.config.parser import (
    AndroidConfig,
    DinghyConfig,
    OverlayConfig,
    PlatformConfig,
    SshDeviceConfig,
    TestDataConfig,
    discover_config_files,
    load_config,
    parse_config,
)

__all__ = [
    "AndroidConfig",
    "DinghyConfig",
    "OverlayConfig",
    "PlatformConfig",
    "SshDeviceConfig",
    "TestDataConfig",
    "discover_config_files",
    "load_config",
    "parse_config",
]
