"""Configuration management for envkit."""

from envkit.config.parser import (
    DEFAULT_CONFIG_NAME,
    DEFAULT_INSTALL_URL,
    DiscoveryConfig,
    EnvKitConfig,
    ServerConfig,
    WatcherConfig,
    load_config,
    parse_config,
)
from envkit.core.exceptions import ConfigError

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_INSTALL_URL",
    "ConfigError",
    "DiscoveryConfig",
    "EnvKitConfig",
    "ServerConfig",
    "WatcherConfig",
    "load_config",
    "parse_config",
]
