"""
Persistent key-value state for envkit.

StateStore is a small JSON blob store that survives process restarts. It
holds the active environment selection under the key 'jacEnvPath' and is
shared by every envkit process of the same user, so writes go through a
file lock and an atomic rename.

Example:
    >>> store = StateStore(Path('~/.envkit/state.json').expanduser())
    >>> store.update('jacEnvPath', '/home/user/project/.venv/bin/jac')
    >>> store.get('jacEnvPath')
    '/home/user/project/.venv/bin/jac'
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from filelock import FileLock, Timeout

from envkit.core.exceptions import StateError, StateLockTimeout
from envkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

ACTIVE_ENV_KEY = "jacEnvPath"


class StateStore:
    """
    JSON-file backed key-value store.

    Values are any JSON-serializable object. Updating a key to None removes
    it. Reads return a cached copy after the first load; call reload() to
    pick up changes written by other processes.
    """

    def __init__(self, state_file: Path, lock_timeout: float = 10):
        """
        Initialize state store.

        Args:
            state_file: Path to the JSON state file
            lock_timeout: Timeout in seconds for acquiring the file lock
        """
        self.state_file = Path(state_file)
        self.lock_path = self.state_file.parent / "lock" / f"{self.state_file.name}.lock"
        self.lock_timeout = lock_timeout
        self._data: Optional[Dict[str, Any]] = None

    def _read(self) -> Dict[str, Any]:
        """
        Read state from disk.

        A missing file is an empty state. A corrupted file is logged and
        treated as empty so a bad write never blocks startup.
        """
        if not self.state_file.exists():
            logger.debug(f"State file not found, starting empty: {self.state_file}")
            return {}

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Invalid state file {self.state_file}, resetting: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"State file {self.state_file} is not an object, resetting")
            return {}
        return data

    @contextmanager
    def _lock(self):
        """
        Context manager for exclusive access to the state file.

        Raises:
            StateLockTimeout: If lock cannot be acquired within timeout
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self.lock_path, timeout=self.lock_timeout)
        try:
            with lock:
                yield
        except Timeout as e:
            raise StateLockTimeout(
                f"Could not acquire state lock within {self.lock_timeout} seconds"
            ) from e

    def reload(self) -> None:
        """Drop the cached copy so the next read hits the disk."""
        self._data = None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value.

        Args:
            key: State key
            default: Value returned when the key is absent

        Returns:
            Stored value or default
        """
        if self._data is None:
            self._data = self._read()
        return self._data.get(key, default)

    def update(self, key: str, value: Any) -> None:
        """
        Set or remove a value and persist the store.

        Args:
            key: State key
            value: New value; None removes the key

        Raises:
            StateError: If the state file cannot be written
        """
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with self._lock():
                data = self._read()
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
                atomic_write(self.state_file, json.dumps(data, indent=2))
                self._data = data
        except StateLockTimeout:
            raise
        except (OSError, TypeError, ValueError) as e:
            raise StateError(f"Failed to save state {self.state_file}: {e}") from e

        logger.debug(f"Updated state key {key!r}")
