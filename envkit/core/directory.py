"""
Storage directory management for envkit.

envkit keeps its private persistent data in one directory:

    Storage (~/.envkit/ or %USERPROFILE%\\.envkit\\):
        - jac-env-cache.json : Paths found by the last complete discovery
        - state.json         : Persisted key-value state (active selection)
        - lock/              : Cross-process lock files
"""

import os
from pathlib import Path
from typing import Optional, Union

from envkit.core.exceptions import EnvKitError


class DirectoryError(EnvKitError):
    """Raised when the storage directory cannot be determined or created."""

    pass


def get_storage_dir() -> Path:
    """
    Get the platform-specific storage directory path.

    Honours the ENVKIT_HOME environment variable when set.

    Returns:
        Path: The storage directory path.
            - Windows: %USERPROFILE%\\.envkit
            - Linux/macOS: ~/.envkit/

    Example:
        >>> get_storage_dir()
        PosixPath('/home/user/.envkit')
    """
    override = os.environ.get("ENVKIT_HOME")
    if override:
        return Path(override).expanduser()

    if os.name == "nt":
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine storage directory."
            )
        return Path(user_profile) / ".envkit"
    return Path.home() / ".envkit"


def resolve_storage_dir(configured: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve the storage directory from configuration.

    Args:
        configured: Configured directory (may start with '~'), or None for
            the default location

    Returns:
        Absolute storage directory path
    """
    if configured:
        return Path(configured).expanduser().resolve()
    return get_storage_dir()


def ensure_storage_dir(path: Path) -> Path:
    """
    Create the storage directory and its lock subdirectory.

    Args:
        path: Storage directory

    Returns:
        The same path

    Raises:
        DirectoryError: If the directory cannot be created
    """
    try:
        (path / "lock").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(f"Failed to create storage directory {path}: {e}") from e
    return path
