"""
envkit CLI argument parser.

This module implements the command-line interface for envkit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from envkit.core.exceptions import EnvKitError

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("envkit")
except Exception:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """envkit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="envkit",
            description="envkit - find, cache and select Jac toolchain environments",
            epilog='Use "envkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"envkit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./envkit.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Workspace root to search (default: current directory)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_discover_command(subparsers)
        self._add_active_command(subparsers)
        self._add_select_command(subparsers)
        self._add_watch_command(subparsers)
        self._add_cache_command(subparsers)

        return parser

    def _add_discover_command(self, subparsers):
        """Add 'discover' subcommand."""
        parser = subparsers.add_parser(
            "discover",
            help="Find all Jac environments",
            description="Run every locator concurrently and list the environments found",
        )
        parser.add_argument(
            "--json", action="store_true", help="Print results as JSON"
        )
        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Do not show or update the path cache",
        )

    def _add_active_command(self, subparsers):
        """Add 'active' subcommand."""
        subparsers.add_parser(
            "active",
            help="Show the active environment",
            description="Show the active Jac executable and its Python interpreter",
        )

    def _add_select_command(self, subparsers):
        """Add 'select' subcommand."""
        parser = subparsers.add_parser(
            "select",
            help="Select the active environment",
            description="Select a Jac executable, interactively when no path is given",
        )
        parser.add_argument(
            "path",
            nargs="?",
            metavar="PATH",
            help="Path to the Jac executable ('~' is expanded)",
        )
        parser.add_argument(
            "--auto",
            action="store_true",
            help="Keep a valid selection, otherwise pick the recommended environment",
        )

    def _add_watch_command(self, subparsers):
        """Add 'watch' subcommand."""
        parser = subparsers.add_parser(
            "watch",
            help="Watch for environments being created or removed",
            description="Keep the path cache fresh by watching environment locations",
        )
        parser.add_argument(
            "--lsp",
            action="store_true",
            help="Also run the language server from the active environment",
        )

    def _add_cache_command(self, subparsers):
        """Add 'cache' subcommand with sub-subcommands."""
        parser = subparsers.add_parser(
            "cache",
            help="Inspect or clear the path cache",
            description="Manage the on-disk cache of discovered environments",
        )

        cache_subparsers = parser.add_subparsers(
            dest="cache_command", help="Cache commands", metavar="COMMAND"
        )
        cache_subparsers.add_parser(
            "show",
            help="Show cached paths",
            description="Show the cache file location and its paths",
        )
        cache_subparsers.add_parser(
            "clear",
            help="Delete the cache file",
            description="Delete the cache file; the next discovery rebuilds it",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except EnvKitError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        if args.command == "cache":
            return self._dispatch_cache_command(args)

        # Command module mapping
        command_map = {
            "discover": "envkit.cli.commands.discover",
            "active": "envkit.cli.commands.active",
            "select": "envkit.cli.commands.select",
            "watch": "envkit.cli.commands.watch",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        try:
            # Dynamic import of command module
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Failed to load command module: {e}")
            return 1

        # Call run() function in module
        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return 1

        return module.run(args)

    def _dispatch_cache_command(self, args) -> int:
        """
        Dispatch cache sub-commands.

        Args:
            args: Parsed arguments with cache_command field

        Returns:
            Exit code from command handler
        """
        if not getattr(args, "cache_command", None):
            logger.error("No cache sub-command specified")
            return 1

        from envkit.cli.commands import cache

        cache_command_map = {
            "show": cache.run_show,
            "clear": cache.run_clear,
        }

        handler = cache_command_map.get(args.cache_command)
        if not handler:
            logger.error(f"Unknown cache command: {args.cache_command}")
            return 1

        return handler(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
