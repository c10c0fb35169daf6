"""
Cache command implementation.

Inspects or clears the on-disk cache of discovered environment paths.
"""

import logging

from envkit.cli.utils import load_cli_config, safe_print
from envkit.core.directory import resolve_storage_dir
from envkit.environment.cache import EnvCache

logger = logging.getLogger(__name__)


def _open_cache(args) -> EnvCache:
    config = load_cli_config(args)
    return EnvCache(resolve_storage_dir(config.storage_dir))


def run_show(args) -> int:
    """
    Show the cache file location and its paths.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    cache = _open_cache(args)
    paths = cache.load()

    safe_print(f"Cache file: {cache.disk_path}")
    if paths is None:
        safe_print("No cache (missing or unreadable)")
        return 0

    safe_print(f"{len(paths)} cached path(s):")
    for path in paths:
        safe_print(f"  {path}")
    return 0


def run_clear(args) -> int:
    """
    Delete the cache file.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    cache = _open_cache(args)
    if cache.clear():
        logger.info(f"Removed {cache.disk_path}")
    else:
        logger.info("No cache file to remove")
    return 0
