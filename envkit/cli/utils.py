"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from envkit.config.parser import DEFAULT_CONFIG_NAME, EnvKitConfig, load_config
from envkit.environment import EnvManager, EnvironmentRecord, create_env_manager
from envkit.environment.display import env_name, format_path

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Management
# ============================================================================


def resolve_project_root(path: Optional[Path] = None) -> Path:
    """
    Resolve project root directory.

    Args:
        path: Optional path (defaults to current directory)

    Returns:
        Resolved absolute path
    """
    if path is None:
        path = Path.cwd()
    return Path(path).expanduser().resolve()


def load_cli_config(args) -> EnvKitConfig:
    """
    Load configuration for a CLI invocation.

    An explicit --config file must exist; otherwise envkit.yaml in the
    project root is used when present.

    Args:
        args: Parsed arguments with config and project_root

    Returns:
        Parsed configuration

    Raises:
        ConfigError: If the configuration is invalid or --config is missing
    """
    config_file = getattr(args, "config", None)
    if config_file:
        logger.debug(f"Loading configuration from {config_file}")
        return load_config(Path(config_file), required=True)

    default_config = resolve_project_root(getattr(args, "project_root", None)) / DEFAULT_CONFIG_NAME
    if default_config.exists():
        logger.debug(f"Loading configuration from {default_config}")
    return load_config(default_config, required=False)


def workspace_roots(args) -> Optional[List[str]]:
    """Workspace roots from --project-root, or None to defer to configuration."""
    project_root = getattr(args, "project_root", None)
    if project_root is None:
        return None
    return [str(resolve_project_root(project_root))]


def build_manager(args, config: Optional[EnvKitConfig] = None, server=None) -> EnvManager:
    """
    Build the EnvManager for a CLI invocation.

    Args:
        args: Parsed arguments
        config: Configuration (default: loaded from args)
        server: Language server capability (optional)

    Returns:
        EnvManager instance
    """
    config = config or load_cli_config(args)
    return create_env_manager(config, workspace_roots(args), server=server)


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def format_record(record: EnvironmentRecord, home: Optional[str] = None, marker: str = "") -> str:
    """
    Format an environment record as one output line.

    Example:
        >>> format_record(EnvironmentRecord("/home/u/app/.venv/bin/jac", "0.9.3"), "/home/u")
        '  0.9.3     .venv  ~/app/.venv/bin/jac'
    """
    version = record.version or "-"
    return f"{marker:<2}{version:<10}{env_name(record.path)}  {format_path(record.path, home)}"


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII-safe characters if the message cannot be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        print(message.replace("·", "-").replace("…", "..."), file=file)
