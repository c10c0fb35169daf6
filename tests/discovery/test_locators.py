"""
Tests for the four locators, their composition and executable validation.
"""

import asyncio
import os
import sys
from typing import List

import pytest

from envkit.discovery.locators import (
    HomeLocator,
    Locator,
    LocatorKind,
    PathLocator,
    RegistryLocator,
    WorkspaceLocator,
    default_locators,
    fast_validate,
    fast_validate_many,
    find_all_environments,
    has_executable_layout,
    validate_executable,
)
from envkit.discovery.scanner import StoreScanner
from tests.fixtures.environments import make_context, make_env


class FailingLocator(Locator):
    kind = LocatorKind.HOME

    async def locate(self) -> List[str]:
        raise RuntimeError("boom")


class StaticLocator(Locator):
    kind = LocatorKind.PATH

    def __init__(self, context, paths):
        super().__init__(context)
        self.paths = paths

    async def locate(self) -> List[str]:
        return list(self.paths)


class SlowFallbackScanner(StoreScanner):
    """Scanner whose deep searches block until cancelled."""

    def __init__(self, context):
        super().__init__(context)
        self.cancelled: List[str] = []

    async def _block(self, name):
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.append(name)
            raise
        return []

    async def find_with_native_search(self, root):
        return await self._block("native")

    async def walk(self, base_dir, depth, budget=None):
        return await self._block("walk")


class BrokenWalkScanner(StoreScanner):
    """Scanner whose walk fails and whose native search returns a fixed hit."""

    def __init__(self, context, native_hits):
        super().__init__(context)
        self.native_hits = native_hits

    async def find_with_native_search(self, root):
        return list(self.native_hits)

    async def walk(self, base_dir, depth, budget=None):
        raise PermissionError("denied")


class TestLocatorBoundary:
    """Tests for Locator.run()."""

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, linux_context):
        assert await FailingLocator(linux_context).run() == []

    @pytest.mark.asyncio
    async def test_results_deduplicated(self, linux_context):
        locator = StaticLocator(linux_context, ["/a/bin/jac", "/b/bin/jac", "/a/bin/jac"])
        assert await locator.run() == ["/a/bin/jac", "/b/bin/jac"]


class TestPathLocator:
    """Tests for PathLocator."""

    @pytest.mark.asyncio
    async def test_finds_on_path(self, fake_home, temp_dir):
        exe = make_env(temp_dir / "env")
        bin_dir = os.path.dirname(exe)
        context = make_context(
            fake_home, path_dirs=(str(temp_dir / "empty"), bin_dir, bin_dir)
        )

        assert await PathLocator(context).run() == [exe]

    @pytest.mark.asyncio
    async def test_windows_exe_name(self, fake_home, temp_dir):
        exe = make_env(temp_dir / "env", layout="windows")
        context = make_context(
            fake_home, os_name="windows", path_dirs=(os.path.dirname(exe),)
        )

        assert await PathLocator(context).run() == [exe]


class TestRegistryLocator:
    """Tests for RegistryLocator."""

    @pytest.mark.asyncio
    async def test_manifest_and_roots(self, fake_home, temp_dir):
        listed = make_env(temp_dir / "conda" / "envs" / "listed")
        make_env(temp_dir / "conda" / "envs" / "no-jac", executable=False)
        rooted = make_env(fake_home / "miniconda3" / "envs" / "rooted")

        manifest = fake_home / ".conda" / "environments.txt"
        manifest.parent.mkdir()
        manifest.write_text(
            "\n".join(
                [
                    str(temp_dir / "conda" / "envs" / "listed"),
                    "",
                    str(temp_dir / "conda" / "envs" / "no-jac"),
                    str(temp_dir / "conda" / "envs" / "gone"),
                ]
            )
        )

        found = await RegistryLocator(make_context(fake_home)).run()

        assert found[:2] == [listed, rooted]

    @pytest.mark.asyncio
    async def test_candidates_capped(self, fake_home, temp_dir):
        envs = [make_env(temp_dir / f"env{i}") for i in range(4)]
        manifest = fake_home / ".conda" / "environments.txt"
        manifest.parent.mkdir()
        manifest.write_text("\n".join(str(temp_dir / f"env{i}") for i in range(4)))

        context = make_context(fake_home, max_registry_envs=2)
        assert await RegistryLocator(context).run() == envs[:2]

    @pytest.mark.asyncio
    async def test_duplicates_counted_once(self, fake_home, temp_dir):
        a = make_env(temp_dir / "a")
        b = make_env(temp_dir / "b")
        manifest = fake_home / ".conda" / "environments.txt"
        manifest.parent.mkdir()
        manifest.write_text(
            "\n".join([str(temp_dir / "a"), str(temp_dir / "a"), str(temp_dir / "b")])
        )

        context = make_context(fake_home, max_registry_envs=2)
        assert await RegistryLocator(context).run() == [a, b]

    @pytest.mark.asyncio
    async def test_no_home(self, fake_home):
        context = make_context(fake_home, home=None)
        assert isinstance(await RegistryLocator(context).run(), list)


class TestWorkspaceLocator:
    """Tests for WorkspaceLocator."""

    @pytest.mark.asyncio
    async def test_common_name_short_circuits(self, fake_home, workspace):
        exe = make_env(workspace / ".venv")
        make_env(workspace / "sub" / "other-env")
        context = make_context(fake_home, workspace_roots=(str(workspace),))

        assert await WorkspaceLocator(context).run() == [exe]

    @pytest.mark.asyncio
    async def test_common_name_cancels_fallbacks(self, fake_home, workspace):
        exe = make_env(workspace / "venv")
        context = make_context(fake_home, workspace_roots=(str(workspace),))
        scanner = SlowFallbackScanner(context)

        result = await WorkspaceLocator(context, scanner).locate_in_root(str(workspace))
        await asyncio.sleep(0.05)

        assert result == [exe]
        assert sorted(scanner.cancelled) == ["native", "walk"]

    @pytest.mark.asyncio
    async def test_walk_fallback(self, fake_home, workspace):
        nested = make_env(workspace / "services" / "api" / "env")
        context = make_context(fake_home, workspace_roots=(str(workspace),))

        assert await WorkspaceLocator(context).run() == [nested]

    @pytest.mark.asyncio
    async def test_failed_fallback_tolerated(self, fake_home, workspace):
        context = make_context(fake_home, workspace_roots=(str(workspace),))
        scanner = BrokenWalkScanner(context, ["/elsewhere/bin/jac"])

        assert await WorkspaceLocator(context, scanner).run() == ["/elsewhere/bin/jac"]

    @pytest.mark.asyncio
    async def test_multiple_roots(self, fake_home, tmp_path):
        a = make_env(tmp_path / "a" / ".venv")
        b = make_env(tmp_path / "b" / "env")
        context = make_context(
            fake_home, workspace_roots=(str(tmp_path / "a"), str(tmp_path / "b"))
        )

        assert await WorkspaceLocator(context).run() == [a, b]


class TestHomeLocator:
    """Tests for HomeLocator."""

    @pytest.mark.asyncio
    async def test_tool_stores(self, fake_home):
        venv = make_env(fake_home / ".virtualenvs" / "proj")
        make_env(fake_home / ".virtualenvs" / "unmarked", marker=False)
        pipx = make_env(fake_home / ".local" / "share" / "pipx" / "venvs" / "jaclang", marker=False)
        pyenv = make_env(fake_home / ".pyenv" / "versions" / "3.11.4", marker=False)
        nested = make_env(fake_home / ".pyenv" / "versions" / "3.12.0" / "envs" / "dev")
        user_exe = fake_home / ".local" / "bin" / "jac"
        user_exe.parent.mkdir(parents=True)
        user_exe.write_text("")

        found = await HomeLocator(make_context(fake_home)).run()

        assert sorted(found) == sorted([venv, pipx, pyenv, nested, str(user_exe)])

    @pytest.mark.asyncio
    async def test_no_home(self, fake_home):
        context = make_context(fake_home, home=None)
        assert await HomeLocator(context).run() == []


class TestComposition:
    """Tests for default_locators() and find_all_environments()."""

    def test_default_locators(self, linux_context):
        locators = default_locators(linux_context)
        assert list(locators) == [
            LocatorKind.PATH,
            LocatorKind.REGISTRY,
            LocatorKind.WORKSPACE,
            LocatorKind.HOME,
        ]
        scanners = {id(locator.scanner) for locator in locators.values()}
        assert len(scanners) == 1

    @pytest.mark.asyncio
    async def test_union_is_deduplicated(self, fake_home, workspace):
        exe = make_env(workspace / ".venv")
        home_env = make_env(fake_home / ".virtualenvs" / "tools")
        context = make_context(
            fake_home,
            workspace_roots=(str(workspace),),
            path_dirs=(os.path.dirname(exe),),
        )

        found = await find_all_environments(context)

        assert found == [exe, home_env]

    @pytest.mark.asyncio
    async def test_one_failing_locator(self, linux_context):
        locators = [
            FailingLocator(linux_context),
            StaticLocator(linux_context, ["/x/bin/jac"]),
        ]
        assert await find_all_environments(linux_context, locators) == ["/x/bin/jac"]


class TestValidation:
    """Tests for executable validation."""

    @pytest.mark.asyncio
    async def test_validate_absolute(self, temp_dir):
        exe = make_env(temp_dir / "env")
        assert await validate_executable(exe, []) is True
        assert await validate_executable(str(temp_dir / "nope" / "bin" / "jac"), []) is False

    @pytest.mark.asyncio
    async def test_validate_bare_name_on_path(self, temp_dir):
        exe = make_env(temp_dir / "env")
        assert await validate_executable("jac", [os.path.dirname(exe)]) is True
        assert await validate_executable("jac", [str(temp_dir)]) is False

    @pytest.mark.asyncio
    async def test_validate_empty(self):
        assert await validate_executable("", ["/usr/bin"]) is False

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/home/u/.venv/bin/jac", True),
            ("C:\\envs\\app\\Scripts\\jac.exe", True),
            ("C:/envs/app/scripts/JAC.EXE", True),
            ("/home/u/jac", False),
            ("/home/u/.venv/bin/jac.exe", False),
            ("/home/u/.venv/Scripts/jac", False),
        ],
    )
    def test_layout(self, path, expected):
        assert has_executable_layout(path) is expected

    @pytest.mark.asyncio
    async def test_fast_validate(self, temp_dir):
        exe = make_env(temp_dir / "env")
        assert await fast_validate(exe) is True
        assert await fast_validate(str(temp_dir / "env" / "pyvenv.cfg")) is False

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    @pytest.mark.asyncio
    async def test_fast_validate_mode(self, temp_dir):
        exe = make_env(temp_dir / "env")
        os.chmod(exe, 0o644)
        assert await fast_validate(exe, check_mode=True) is False
        assert await fast_validate(exe, check_mode=False) is True

    @pytest.mark.asyncio
    async def test_fast_validate_many(self, temp_dir):
        good = make_env(temp_dir / "a")
        bad = str(temp_dir / "b" / "bin" / "jac")
        assert await fast_validate_many([bad, good]) == [good]
