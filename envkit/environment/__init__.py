"""
Environment management for envkit.

Wires discovery, the path cache, the watcher, the active selection store and
the language server capability into one EnvManager.

Usage:
    from envkit.config import load_config
    from envkit.environment import create_env_manager

    manager = create_env_manager(load_config())
    records = await manager.discover()
"""

import logging
from typing import Mapping, Optional, Sequence

from envkit.config.parser import EnvKitConfig
from envkit.core.directory import ensure_storage_dir, resolve_storage_dir
from envkit.core.state import StateStore
from envkit.discovery.context import DiscoveryContext

from .cache import CACHE_FILE_NAME, EnvCache
from .manager import (
    DiscoveryEvent,
    DiscoverySnapshot,
    DiscoveryState,
    EnvironmentRecord,
    EnvManager,
    EventKind,
)
from .selection import PickerItem, PickerSession, SelectionController, SelectionUI
from .server import LanguageServerController, SubprocessLanguageServer
from .watcher import EnvWatcher, WatcherCallbacks

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "state.json"


def create_env_manager(
    config: EnvKitConfig,
    workspace_roots: Optional[Sequence[str]] = None,
    server: Optional[LanguageServerController] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvManager:
    """
    Build an EnvManager from configuration.

    Args:
        config: Loaded configuration
        workspace_roots: Workspace roots overriding the configured ones
        server: Language server capability (optional)
        environ: Environment mapping (default: os.environ)

    Returns:
        EnvManager seeded from the on-disk cache

    Raises:
        DirectoryError: If the storage directory cannot be created
    """
    context = DiscoveryContext.from_config(config, workspace_roots, environ)
    storage_dir = ensure_storage_dir(resolve_storage_dir(config.storage_dir))
    logger.debug(f"Using storage directory {storage_dir}")

    return EnvManager(
        context=context,
        cache=EnvCache(storage_dir),
        state_store=StateStore(storage_dir / STATE_FILE_NAME),
        server=server,
        staleness_seconds=config.discovery.staleness_seconds,
    )


def create_language_server(
    manager: EnvManager, config: EnvKitConfig
) -> SubprocessLanguageServer:
    """
    Build the language server controller and attach it to the manager.

    The server always launches the manager's current executable, so a
    selection change followed by restart_server() switches environments.
    """
    server = SubprocessLanguageServer(
        manager.get_jac_path,
        args=config.server.args,
        stop_timeout=config.server.stop_timeout,
    )
    manager.server = server
    return server


def create_watcher(manager: EnvManager, config: EnvKitConfig) -> EnvWatcher:
    """Build an EnvWatcher feeding the given manager."""
    return EnvWatcher(
        manager.watcher_callbacks(),
        manager.context,
        settle_delay=config.watcher.settle_delay,
        registry_debounce=config.watcher.registry_debounce,
        pinpoint_timeout=config.watcher.pinpoint_timeout,
    )


__all__ = [
    "CACHE_FILE_NAME",
    "STATE_FILE_NAME",
    "EnvCache",
    "DiscoveryEvent",
    "DiscoverySnapshot",
    "DiscoveryState",
    "EnvironmentRecord",
    "EnvManager",
    "EventKind",
    "PickerItem",
    "PickerSession",
    "SelectionController",
    "SelectionUI",
    "LanguageServerController",
    "SubprocessLanguageServer",
    "EnvWatcher",
    "WatcherCallbacks",
    "create_env_manager",
    "create_language_server",
    "create_watcher",
]
