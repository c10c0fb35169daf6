"""
Core functionality for envkit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_storage_dir,
    resolve_storage_dir,
    ensure_storage_dir,
    DirectoryError,
)

from .platform import (
    detect_os,
    clear_platform_cache,
    executable_name,
    home_directory,
    path_directories,
)

from .state import ACTIVE_ENV_KEY, StateStore

from .exceptions import (
    EnvKitError,
    ConfigError,
    StateError,
    StateLockTimeout,
    EnvironmentSelectionError,
    EnvironmentNotFoundError,
    InvalidExecutableError,
    ServerError,
    ServerStartError,
    WatcherError,
)

__all__ = [
    "get_storage_dir",
    "resolve_storage_dir",
    "ensure_storage_dir",
    "DirectoryError",
    "detect_os",
    "clear_platform_cache",
    "executable_name",
    "home_directory",
    "path_directories",
    "ACTIVE_ENV_KEY",
    "StateStore",
    "EnvKitError",
    "ConfigError",
    "StateError",
    "StateLockTimeout",
    "EnvironmentSelectionError",
    "EnvironmentNotFoundError",
    "InvalidExecutableError",
    "ServerError",
    "ServerStartError",
    "WatcherError",
]
