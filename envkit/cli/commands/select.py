"""
Select command implementation.

With a path, validates and selects it. With --auto, keeps a valid selection
or silently picks the recommended environment. Otherwise runs the
interactive picker.
"""

import asyncio
import logging

from envkit.cli.console_ui import ConsoleSelectionUI
from envkit.cli.utils import build_manager, load_cli_config, safe_print
from envkit.core.filesystem import expand_home
from envkit.environment import SelectionController
from envkit.environment.display import format_path

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the select command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when an environment is active afterwards)

    Raises:
        InvalidExecutableError: If the given path is not a valid executable
    """
    return asyncio.run(_run(args))


async def _run(args) -> int:
    config = load_cli_config(args)
    manager = build_manager(args, config)
    controller = SelectionController(manager, ConsoleSelectionUI(), config.install_url)
    home = manager.context.home

    try:
        if args.path:
            path = expand_home(args.path.strip(), home)
            await manager.select(path)
            safe_print(f"Jac environment set to: {format_path(path, home)}")
            active = manager.get_active()
        elif args.auto:
            active = await controller.initialize()
        else:
            active = await controller.run()
    finally:
        await manager.close()

    if active is None:
        safe_print("No Jac environment selected.")
        return 1

    logger.debug(f"Active environment: {active}")
    return 0
