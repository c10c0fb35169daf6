"""
Tests for version reading, comparison and recommendation.
"""

import pytest

from envkit.discovery.version import (
    compare_versions,
    pick_recommended,
    read_version,
    read_version_sync,
    read_versions,
)
from tests.fixtures.environments import make_env


class TestCompareVersions:
    """Tests for compare_versions()."""

    @pytest.mark.parametrize(
        "a,b,sign",
        [
            ("0.9.3", "0.9.3", 0),
            ("0.9.10", "0.9.9", 1),
            ("1.0", "0.99.99", 1),
            ("0.9", "0.9.0", 0),
            ("0.9", "0.9.2", -1),
            ("0.10.0", "0.9.0", 1),
            ("1.0.0rc1", "1.0.0", 0),
            ("1.dev", "1.0", 0),
            ("2", "10", -1),
        ],
    )
    def test_ordering(self, a, b, sign):
        result = compare_versions(a, b)
        assert (result > 0) - (result < 0) == sign

    def test_antisymmetric(self):
        assert compare_versions("0.8.1", "0.9") == -compare_versions("0.9", "0.8.1")


class TestPickRecommended:
    """Tests for pick_recommended()."""

    def test_empty(self):
        assert pick_recommended({}) is None

    def test_highest_version_wins(self):
        versions = {"/a/bin/jac": "0.8.0", "/b/bin/jac": "0.9.1", "/c/bin/jac": "0.9.0"}
        assert pick_recommended(versions) == "/b/bin/jac"

    def test_tie_keeps_first(self):
        versions = {"/a/bin/jac": "0.9.0", "/b/bin/jac": "0.9"}
        assert pick_recommended(versions) == "/a/bin/jac"

    def test_unversioned_never_beats_versioned(self):
        versions = {"/a/bin/jac": None, "/b/bin/jac": "0.1.0"}
        assert pick_recommended(versions) == "/b/bin/jac"

    def test_all_unversioned_returns_first(self):
        versions = {"/a/bin/jac": None, "/b/bin/jac": None}
        assert pick_recommended(versions) == "/a/bin/jac"


class TestReadVersion:
    """Tests for reading the installed distribution version."""

    def test_unix_layout(self, temp_dir):
        exe = make_env(temp_dir / ".venv", version="0.9.3")
        assert read_version_sync(exe) == "0.9.3"

    def test_dist_packages(self, temp_dir):
        env = temp_dir / "sys"
        exe = make_env(env, version=None)
        (env / "lib" / "python3.12" / "dist-packages" / "jaclang-0.7.2.dist-info").mkdir(
            parents=True
        )
        assert read_version_sync(exe) == "0.7.2"

    def test_windows_layout(self, temp_dir):
        exe = make_env(temp_dir / "winenv", version="0.8.0", layout="windows")
        assert read_version_sync(exe) == "0.8.0"

    def test_other_distribution_ignored(self, temp_dir):
        env = temp_dir / ".venv"
        exe = make_env(env, version=None)
        site = env / "lib" / "python3.11" / "site-packages"
        site.mkdir(parents=True, exist_ok=True)
        (site / "jaclang_extras-1.0.dist-info").mkdir()
        (site / "requests-2.0.dist-info").mkdir()
        assert read_version_sync(exe) is None

    def test_custom_distribution(self, temp_dir):
        env = temp_dir / ".venv"
        exe = make_env(env, version=None)
        site = env / "lib" / "python3.11" / "site-packages"
        site.mkdir(parents=True, exist_ok=True)
        (site / "jaclang_nightly-2.0.dist-info").mkdir()
        assert read_version_sync(exe, "jaclang_nightly") == "2.0"

    def test_missing_environment(self, temp_dir):
        assert read_version_sync(str(temp_dir / "gone" / "bin" / "jac")) is None

    @pytest.mark.asyncio
    async def test_async_read(self, temp_dir):
        exe = make_env(temp_dir / ".venv", version="0.9.3")
        assert await read_version(exe) == "0.9.3"

    @pytest.mark.asyncio
    async def test_read_versions_keeps_order(self, temp_dir):
        a = make_env(temp_dir / "a", version="0.1.0")
        b = make_env(temp_dir / "b", version=None)
        c = make_env(temp_dir / "c", version="0.3.0")

        versions = await read_versions([a, b, c])

        assert list(versions.items()) == [(a, "0.1.0"), (b, None), (c, "0.3.0")]
