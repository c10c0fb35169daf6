"""
Tests for the persistent path cache.
"""

import json
from unittest.mock import patch

from filelock import Timeout

from envkit.environment.cache import CACHE_FILE_NAME, EnvCache


class TestEnvCacheLoad:
    """Tests for loading the cache."""

    def test_missing_file(self, storage_dir):
        assert EnvCache(storage_dir).load() is None

    def test_disk_path(self, storage_dir):
        assert EnvCache(storage_dir).disk_path == storage_dir / CACHE_FILE_NAME

    def test_round_trip_keeps_order(self, storage_dir):
        cache = EnvCache(storage_dir)
        paths = ["/b/bin/jac", "/a/bin/jac", "/c/Scripts/jac.exe"]

        assert cache.save(paths) is True
        assert cache.load() == paths

    def test_corrupted_file(self, storage_dir):
        (storage_dir / CACHE_FILE_NAME).write_text("[\"/a/bin/jac\",")
        assert EnvCache(storage_dir).load() is None

    def test_not_an_array(self, storage_dir):
        (storage_dir / CACHE_FILE_NAME).write_text(json.dumps({"paths": []}))
        assert EnvCache(storage_dir).load() is None

    def test_non_string_entries_dropped(self, storage_dir):
        (storage_dir / CACHE_FILE_NAME).write_text(json.dumps(["/a/bin/jac", 3, None]))
        assert EnvCache(storage_dir).load() == ["/a/bin/jac"]

    def test_empty_list(self, storage_dir):
        cache = EnvCache(storage_dir)
        cache.save([])
        assert cache.load() == []


class TestEnvCacheSave:
    """Tests for saving and clearing the cache."""

    def test_save_replaces(self, storage_dir):
        cache = EnvCache(storage_dir)
        cache.save(["/a/bin/jac"])
        cache.save(["/b/bin/jac"])
        assert cache.load() == ["/b/bin/jac"]

    def test_save_creates_directories(self, tmp_path):
        cache = EnvCache(tmp_path / "new" / "storage")
        assert cache.save(["/a/bin/jac"]) is True
        assert cache.lock_path.parent.is_dir()

    def test_lock_timeout_swallowed(self, storage_dir):
        cache = EnvCache(storage_dir, lock_timeout=0.01)
        with patch("envkit.environment.cache.FileLock") as mock_lock:
            mock_lock.return_value.__enter__.side_effect = Timeout(str(cache.lock_path))
            assert cache.save(["/a/bin/jac"]) is False
        assert cache.load() is None

    def test_write_error_swallowed(self, storage_dir):
        cache = EnvCache(storage_dir)
        with patch("envkit.environment.cache.atomic_write", side_effect=OSError("disk full")):
            assert cache.save(["/a/bin/jac"]) is False

    def test_clear(self, storage_dir):
        cache = EnvCache(storage_dir)
        cache.save(["/a/bin/jac"])

        assert cache.clear() is True
        assert cache.load() is None
        assert cache.clear() is False
