"""
Active command implementation.

Shows the active Jac executable, its version and the matching Python
interpreter.
"""

import asyncio
import logging

from envkit.cli.utils import build_manager, safe_print
from envkit.environment.display import status_label

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the active command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when an environment is active, 1 otherwise)
    """
    return asyncio.run(_run(args))


async def _run(args) -> int:
    manager = build_manager(args)
    active = await manager.validate_active()
    version = await manager.get_version(active) if active else None

    safe_print(status_label(active, version, manager.context.path_dirs))
    safe_print(f"Jac:    {manager.get_jac_path()}")
    safe_print(f"Python: {manager.get_python_path()}")

    if active is None:
        logger.info("No environment selected. Run 'envkit select' to choose one.")
        return 1
    return 0
