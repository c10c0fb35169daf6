"""
Filesystem helpers for envkit.

Blocking primitives (existence checks, directory listings, atomic writes)
plus their awaitable counterparts. The awaitable versions run the blocking
call in a worker thread so that every filesystem access is a suspension
point on the event loop and many probes can be in flight at once.

None of the probing helpers raise on I/O errors: an unreadable or vanished
path simply reports as missing or empty.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


# ============================================================================
# Blocking Probes
# ============================================================================


def file_exists(path: Union[str, Path]) -> bool:
    """
    Check whether a path exists (any file type).

    Args:
        path: Path to check

    Returns:
        True if the path exists, False if missing or inaccessible
    """
    try:
        return os.path.exists(path)
    except (OSError, ValueError):
        return False


def list_subdirectories(path: Union[str, Path]) -> List[str]:
    """
    List the immediate subdirectories of a directory.

    Args:
        path: Directory to list

    Returns:
        Absolute paths of subdirectories (symlinks to directories included),
        or an empty list if the directory cannot be read
    """
    try:
        with os.scandir(path) as entries:
            return [
                os.path.join(path, entry.name)
                for entry in entries
                if _is_dir_entry(entry)
            ]
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot list {path}: {e}")
        return []


def list_names(path: Union[str, Path]) -> List[str]:
    """
    List entry names of a directory.

    Returns:
        Entry names, or an empty list if the directory cannot be read
    """
    try:
        return os.listdir(path)
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot list {path}: {e}")
        return []


def read_text(path: Union[str, Path], encoding: str = "utf-8") -> Optional[str]:
    """
    Read a text file.

    Returns:
        File contents, or None if the file cannot be read or decoded
    """
    try:
        with open(path, "r", encoding=encoding) as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


def _is_dir_entry(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()
    except OSError:
        return False


# ============================================================================
# Awaitable Probes
# ============================================================================


async def path_exists(path: Union[str, Path]) -> bool:
    """Awaitable version of file_exists()."""
    return await asyncio.to_thread(file_exists, path)


async def subdirectories(path: Union[str, Path]) -> List[str]:
    """Awaitable version of list_subdirectories()."""
    return await asyncio.to_thread(list_subdirectories, path)


async def read_text_async(path: Union[str, Path]) -> Optional[str]:
    """Awaitable version of read_text()."""
    return await asyncio.to_thread(read_text, path)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('cache.json', '["/usr/bin/jac"]')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def expand_home(value: str, home: Optional[str]) -> str:
    """
    Expand a leading '~' against the given home directory.

    Args:
        value: User-entered path
        home: Home directory (no expansion when None)

    Returns:
        Expanded path, or the input unchanged if it has no '~' prefix

    Example:
        >>> expand_home("~/envs/bin/jac", "/home/user")
        '/home/user/envs/bin/jac'
    """
    if not value.startswith("~") or not home:
        return value
    rest = value[1:].lstrip("/\\")
    return os.path.join(home, rest) if rest else home
