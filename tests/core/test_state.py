"""
Unit tests for the key-value state store.

Tests loading, updates, removal, corruption handling and locking.
"""

import json
from unittest.mock import patch

import pytest
from filelock import Timeout

from envkit.core.exceptions import StateError, StateLockTimeout
from envkit.core.state import ACTIVE_ENV_KEY, StateStore


class TestStateStoreRead:
    """Tests for reading state."""

    def test_missing_file_is_empty(self, temp_dir):
        store = StateStore(temp_dir / "state.json")
        assert store.get(ACTIVE_ENV_KEY) is None
        assert store.get("other", "default") == "default"

    def test_reads_existing_file(self, temp_dir):
        state_file = temp_dir / "state.json"
        state_file.write_text(json.dumps({ACTIVE_ENV_KEY: "/envs/a/bin/jac"}))

        store = StateStore(state_file)

        assert store.get(ACTIVE_ENV_KEY) == "/envs/a/bin/jac"

    def test_corrupted_file_is_empty(self, temp_dir):
        state_file = temp_dir / "state.json"
        state_file.write_text("{not json")

        assert StateStore(state_file).get(ACTIVE_ENV_KEY) is None

    def test_non_object_file_is_empty(self, temp_dir):
        state_file = temp_dir / "state.json"
        state_file.write_text("[1, 2, 3]")

        assert StateStore(state_file).get(ACTIVE_ENV_KEY) is None

    def test_reload_picks_up_external_changes(self, temp_dir):
        state_file = temp_dir / "state.json"
        store = StateStore(state_file)
        assert store.get("k") is None

        state_file.write_text(json.dumps({"k": "v"}))
        assert store.get("k") is None  # cached

        store.reload()
        assert store.get("k") == "v"


class TestStateStoreUpdate:
    """Tests for updating state."""

    def test_update_persists(self, temp_dir):
        state_file = temp_dir / "state.json"
        store = StateStore(state_file)

        store.update(ACTIVE_ENV_KEY, "/envs/a/bin/jac")

        assert store.get(ACTIVE_ENV_KEY) == "/envs/a/bin/jac"
        assert json.loads(state_file.read_text()) == {ACTIVE_ENV_KEY: "/envs/a/bin/jac"}

    def test_update_keeps_other_keys(self, temp_dir):
        state_file = temp_dir / "state.json"
        state_file.write_text(json.dumps({"other": 1}))
        store = StateStore(state_file)

        store.update(ACTIVE_ENV_KEY, "/x/bin/jac")

        assert json.loads(state_file.read_text()) == {"other": 1, ACTIVE_ENV_KEY: "/x/bin/jac"}

    def test_update_none_removes_key(self, temp_dir):
        state_file = temp_dir / "state.json"
        store = StateStore(state_file)
        store.update(ACTIVE_ENV_KEY, "/x/bin/jac")

        store.update(ACTIVE_ENV_KEY, None)

        assert store.get(ACTIVE_ENV_KEY) is None
        assert json.loads(state_file.read_text()) == {}

    def test_lock_file_location(self, temp_dir):
        store = StateStore(temp_dir / "state.json")
        store.update("k", "v")
        assert store.lock_path == temp_dir / "lock" / "state.json.lock"
        assert store.lock_path.parent.is_dir()

    def test_unserializable_value_raises_state_error(self, temp_dir):
        store = StateStore(temp_dir / "state.json")
        with pytest.raises(StateError):
            store.update("k", object())

    def test_lock_timeout(self, temp_dir):
        store = StateStore(temp_dir / "state.json", lock_timeout=0.01)
        with patch("envkit.core.state.FileLock") as mock_lock:
            mock_lock.return_value.__enter__.side_effect = Timeout(str(store.lock_path))
            with pytest.raises(StateLockTimeout):
                store.update("k", "v")

    def test_lock_timeout_is_state_error(self):
        assert issubclass(StateLockTimeout, StateError)
