"""YAML configuration parser for envkit.

This module provides parsing and validation for envkit.yaml configuration
files. Every field has a default, so a missing file yields a usable
configuration.

Example envkit.yaml:

    version: 1
    executable: jac
    distribution: jaclang
    workspace_roots:
      - ~/projects/my-jac-app
    discovery:
      staleness_seconds: 30
      max_registry_envs: 30
    watcher:
      settle_delay: 1.0
    server:
      args: [lsp]
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from envkit.core.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "envkit.yaml"
DEFAULT_INSTALL_URL = "https://www.jac-lang.org/learn/installation/"

DEFAULT_COMMON_ENV_NAMES = [
    ".venv",
    "venv",
    "env",
    ".env",
    ".virtualenv",
    "virtualenv",
    ".conda",
    "pyenv",
]


@dataclass
class DiscoveryConfig:
    """Limits and timings for environment discovery."""

    staleness_seconds: float = 30.0
    max_registry_envs: int = 30
    walk_depth: int = 3
    walk_budget: int = 80
    native_search_depth: int = 4
    native_search_timeout: float = 3.0


@dataclass
class WatcherConfig:
    """Filesystem watcher timings (seconds)."""

    enabled: bool = True
    settle_delay: float = 1.0
    registry_debounce: float = 0.5
    pinpoint_timeout: float = 3600.0


@dataclass
class ServerConfig:
    """Downstream language server launch settings."""

    args: List[str] = field(default_factory=lambda: ["lsp"])
    stop_timeout: float = 5.0


@dataclass
class EnvKitConfig:
    """Complete envkit configuration."""

    version: int = 1
    executable: str = "jac"
    distribution: str = "jaclang"
    marker_file: str = "pyvenv.cfg"
    common_env_names: List[str] = field(
        default_factory=lambda: list(DEFAULT_COMMON_ENV_NAMES)
    )
    storage_dir: Optional[str] = None
    workspace_roots: List[str] = field(default_factory=list)
    install_url: str = DEFAULT_INSTALL_URL
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


_TOP_LEVEL_KEYS = {
    "version",
    "executable",
    "distribution",
    "marker_file",
    "common_env_names",
    "storage_dir",
    "workspace_roots",
    "install_url",
    "discovery",
    "watcher",
    "server",
}


def load_config(config_path: Optional[Path] = None, required: bool = False) -> EnvKitConfig:
    """
    Load envkit configuration.

    Args:
        config_path: Path to envkit.yaml (None for defaults)
        required: If True, a missing file is an error

    Returns:
        Parsed and validated configuration

    Raises:
        ConfigError: If configuration is invalid, or missing while required
    """
    if config_path is None:
        return EnvKitConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return EnvKitConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if data is None:
        return EnvKitConfig()

    return parse_config(data)


def parse_config(data: Any) -> EnvKitConfig:
    """
    Parse and validate configuration data.

    Args:
        data: Mapping loaded from YAML

    Returns:
        EnvKitConfig instance

    Raises:
        ConfigError: On unknown keys, wrong types or unsupported version
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    version = data.get("version", 1)
    if version != 1:
        raise ConfigError(f"Unsupported version: {version} (expected 1)")

    defaults = EnvKitConfig()

    return EnvKitConfig(
        version=version,
        executable=_get_str(data, "executable", defaults.executable),
        distribution=_get_str(data, "distribution", defaults.distribution),
        marker_file=_get_str(data, "marker_file", defaults.marker_file),
        common_env_names=_get_str_list(
            data, "common_env_names", defaults.common_env_names
        ),
        storage_dir=_get_optional_str(data, "storage_dir"),
        workspace_roots=_get_str_list(data, "workspace_roots", []),
        install_url=_get_str(data, "install_url", defaults.install_url),
        discovery=_parse_discovery(data.get("discovery") or {}),
        watcher=_parse_watcher(data.get("watcher") or {}),
        server=_parse_server(data.get("server") or {}),
    )


def _parse_discovery(data: Dict[str, Any]) -> DiscoveryConfig:
    """Parse discovery section."""
    _check_section(data, "discovery", DiscoveryConfig)
    defaults = DiscoveryConfig()

    config = DiscoveryConfig(
        staleness_seconds=_get_number(data, "staleness_seconds", defaults.staleness_seconds),
        max_registry_envs=_get_int(data, "max_registry_envs", defaults.max_registry_envs),
        walk_depth=_get_int(data, "walk_depth", defaults.walk_depth),
        walk_budget=_get_int(data, "walk_budget", defaults.walk_budget),
        native_search_depth=_get_int(
            data, "native_search_depth", defaults.native_search_depth
        ),
        native_search_timeout=_get_number(
            data, "native_search_timeout", defaults.native_search_timeout
        ),
    )

    if config.max_registry_envs < 0 or config.walk_depth < 0 or config.walk_budget < 0:
        raise ConfigError("discovery limits must not be negative")

    return config


def _parse_watcher(data: Dict[str, Any]) -> WatcherConfig:
    """Parse watcher section."""
    _check_section(data, "watcher", WatcherConfig)
    defaults = WatcherConfig()

    enabled = data.get("enabled", defaults.enabled)
    if not isinstance(enabled, bool):
        raise ConfigError("watcher.enabled must be a boolean")

    return WatcherConfig(
        enabled=enabled,
        settle_delay=_get_number(data, "settle_delay", defaults.settle_delay),
        registry_debounce=_get_number(
            data, "registry_debounce", defaults.registry_debounce
        ),
        pinpoint_timeout=_get_number(data, "pinpoint_timeout", defaults.pinpoint_timeout),
    )


def _parse_server(data: Dict[str, Any]) -> ServerConfig:
    """Parse server section."""
    _check_section(data, "server", ServerConfig)
    defaults = ServerConfig()

    return ServerConfig(
        args=_get_str_list(data, "args", defaults.args),
        stop_timeout=_get_number(data, "stop_timeout", defaults.stop_timeout),
    )


def _check_section(data: Any, name: str, section_type: type) -> None:
    if not isinstance(data, dict):
        raise ConfigError(f"{name} must be a mapping")
    unknown = set(data) - set(section_type.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown {name} keys: {', '.join(sorted(unknown))}")


def _get_str(data: Dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string")
    return value


def _get_optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _get_str_list(data: Dict[str, Any], key: str, default: List[str]) -> List[str]:
    value = data.get(key, default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings")
    return list(value)


def _get_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer")
    return value


def _get_number(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    if value < 0:
        raise ConfigError(f"{key} must not be negative")
    return float(value)
