"""
Persistent cache of discovered executable paths.

The cache file is a JSON array of absolute path strings written after every
complete discovery, so the next process can paint a picker instantly before
the live locators report back. The cache is a pure optimization: a missing,
unreadable or malformed file is a cache miss, and a failed save is logged
and ignored.

Example:
    >>> cache = EnvCache(Path('~/.envkit').expanduser())
    >>> cache.save(['/usr/bin/jac'])
    >>> cache.load()
    ['/usr/bin/jac']
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from filelock import FileLock, Timeout

from envkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "jac-env-cache.json"


class EnvCache:
    """
    JSON-file backed cache of executable paths.

    Writes are serialized across processes with a file lock in the storage
    directory's lock/ subdirectory and land atomically.
    """

    def __init__(
        self,
        storage_dir: Path,
        filename: str = CACHE_FILE_NAME,
        lock_timeout: float = 5,
    ):
        """
        Initialize cache.

        Args:
            storage_dir: Private persistent storage directory
            filename: Cache file name
            lock_timeout: Timeout in seconds for acquiring the write lock
        """
        self.storage_dir = Path(storage_dir)
        self.cache_file = self.storage_dir / filename
        self.lock_path = self.storage_dir / "lock" / f"{filename}.lock"
        self.lock_timeout = lock_timeout

    @property
    def disk_path(self) -> Path:
        """Absolute path of the cache file (for display and diagnostics)."""
        return self.cache_file

    def load(self) -> Optional[List[str]]:
        """
        Load the cached paths.

        Returns:
            Cached paths, or None when the file is absent, unreadable,
            malformed or not a JSON array. Non-string entries are dropped.
        """
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.cache_file}: {e}")
            return None

        if not isinstance(data, list):
            logger.warning(f"Ignoring cache file {self.cache_file}: not a JSON array")
            return None

        return [entry for entry in data if isinstance(entry, str)]

    def save(self, paths: Sequence[str]) -> bool:
        """
        Persist the given paths, replacing the previous contents.

        Args:
            paths: Executable paths

        Returns:
            True if the cache was written, False if the write failed
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                atomic_write(self.cache_file, json.dumps(list(paths)))
        except Timeout:
            logger.warning(f"Cache lock busy, skipping save of {self.cache_file}")
            return False
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save cache {self.cache_file}: {e}")
            return False

        logger.debug(f"Cached {len(paths)} path(s) to {self.cache_file}")
        return True

    def clear(self) -> bool:
        """
        Delete the cache file.

        Returns:
            True if a file was removed
        """
        try:
            self.cache_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to remove cache {self.cache_file}: {e}")
            return False
        return True
