"""
Discover command implementation.

Runs all locators concurrently and lists the environments found, with
versions and the recommended one.
"""

import asyncio
import json
import logging
from typing import List, Optional, Tuple

from envkit.cli.utils import build_manager, format_record, load_cli_config, safe_print
from envkit.core.exceptions import EnvironmentNotFoundError
from envkit.discovery.locators import find_all_environments
from envkit.discovery.version import pick_recommended, read_versions
from envkit.environment import EnvironmentRecord, EnvManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the discover command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if any environment was found; 1 for empty --json output)

    Raises:
        EnvironmentNotFoundError: If no environment was found
    """
    return asyncio.run(_run(args))


async def _run(args) -> int:
    config = load_cli_config(args)
    manager = build_manager(args, config)
    try:
        if args.no_cache:
            records, recommended = await _discover_uncached(manager)
        else:
            records = await manager.discover()
            recommended = manager.snapshot.recommended
    finally:
        await manager.close()

    active = manager.get_active()

    if args.json:
        payload = {
            "environments": [
                {"path": r.path, "version": r.version} for r in records
            ],
            "recommended": recommended,
            "active": active,
        }
        print(json.dumps(payload, indent=2))
        return 0 if records else 1

    if not records:
        raise EnvironmentNotFoundError(
            f"No Jac environment found. Install Jac: {config.install_url}"
        )

    home = manager.context.home
    safe_print(f"Found {len(records)} environment(s):")
    for record in records:
        marker = "*" if record.path == active else ""
        safe_print(format_record(record, home, marker))
    if recommended:
        safe_print(f"\nRecommended: {recommended}")
    if active:
        safe_print(f"Active:      {active}")
    return 0


async def _discover_uncached(
    manager: EnvManager,
) -> Tuple[List[EnvironmentRecord], Optional[str]]:
    context = manager.context
    paths = await find_all_environments(context, manager.locators.values())
    versions = await read_versions(paths, context.distribution)
    records = [EnvironmentRecord(p, versions[p]) for p in paths]
    return records, pick_recommended(versions)
