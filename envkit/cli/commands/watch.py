"""
Watch command implementation.

Runs a discovery, then watches every environment location in the
foreground, keeping the path cache fresh until interrupted. With --lsp the
language server runs from the active environment alongside.
"""

import asyncio
import logging

from envkit.cli.utils import build_manager, load_cli_config
from envkit.environment import (
    DiscoveryEvent,
    EventKind,
    create_language_server,
    create_watcher,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the watch command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 on clean shutdown)
    """
    return asyncio.run(_run(args))


def _log_event(event: DiscoveryEvent) -> None:
    if event.kind is EventKind.ADDED:
        for path in event.paths:
            logger.info(f"+ {path}")
    elif event.kind is EventKind.PRUNED:
        for path in event.paths:
            logger.info(f"- {path}")
    elif event.kind is EventKind.SETTLED:
        logger.info(f"{len(event.snapshot.cached_paths)} environment(s) known")


async def _run(args) -> int:
    config = load_cli_config(args)
    if not config.watcher.enabled:
        logger.error("Watcher is disabled in configuration (watcher.enabled: false)")
        return 1

    manager = build_manager(args, config)
    watcher = create_watcher(manager, config)
    server = create_language_server(manager, config) if getattr(args, "lsp", False) else None
    unsubscribe = manager.subscribe(_log_event)

    try:
        if server is not None:
            await manager.init()
            await manager.restart_server()
        else:
            await manager.discover()
        watcher.start()
        logger.info("Watching for changes, press Ctrl+C to stop")
        await asyncio.Event().wait()
    finally:
        watcher.dispose()
        unsubscribe()
        if server is not None:
            await server.stop()
        await manager.close()

    return 0
