"""
Environment store scanners.

Scanners turn a directory believed to hold environments into the absolute
paths of the target executable inside them. Four layouts are handled:

- flat stores, one level deep, where each subdirectory is an environment
  (optionally guarded by the marker file)
- versioned stores, where each subdirectory is a language-version install
  that may nest named environments under `<version>/envs/<name>`
- arbitrary trees, through a walk bounded by depth and by a
  directories-visited budget shared across the whole recursion
- the OS-native file index (Spotlight on macOS, `find` on Linux)

Failure policy: an unreadable directory contributes nothing to the result.
No scanner method raises on I/O errors.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from envkit.core.filesystem import path_exists, subdirectories
from envkit.core.platform import LINUX, MACOS, WINDOWS
from envkit.discovery.context import DiscoveryContext

logger = logging.getLogger(__name__)

# Noise directories never worth descending into
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "__pycache__",
        "site-packages",
        "dist",
        "build",
        ".cache",
        ".npm",
        ".yarn",
    }
)

SPOTLIGHT_TIMEOUT = 1.5


@dataclass
class WalkBudget:
    """Directories-visited budget shared by every level of one walk."""

    remaining: int


def unique(paths: Iterable[str]) -> List[str]:
    """De-duplicate paths, keeping first-seen order."""
    return list(dict.fromkeys(paths))


def flatten(groups: Iterable[Iterable[str]]) -> List[str]:
    """Flatten nested path lists, keeping order."""
    return [path for group in groups for path in group]


class StoreScanner:
    """
    Scan environment stores for the target executable.

    Example:
        >>> scanner = StoreScanner(context)
        >>> await scanner.scan_venv_store("/home/user/.virtualenvs")
        ['/home/user/.virtualenvs/app/bin/jac']
    """

    def __init__(self, context: DiscoveryContext):
        """
        Initialize scanner.

        Args:
            context: Discovery context (executable naming, limits)
        """
        self.context = context

    # ------------------------------------------------------------------
    # Single environment
    # ------------------------------------------------------------------

    async def executable_in(self, env_dir: str) -> Optional[str]:
        """
        Resolve the executable inside an environment root.

        Checks `bin/<exe>` and `Scripts/<exe>.exe` concurrently regardless
        of the host platform, since mounted environments may use either
        layout. The Unix layout wins when both exist.

        Args:
            env_dir: Environment root directory

        Returns:
            Absolute executable path, or None if neither layout has it
        """
        unix_path = os.path.join(env_dir, "bin", self.context.unix_exe)
        windows_path = os.path.join(env_dir, "Scripts", self.context.windows_exe)
        unix_ok, windows_ok = await asyncio.gather(
            path_exists(unix_path), path_exists(windows_path)
        )
        if unix_ok:
            return unix_path
        if windows_ok:
            return windows_path
        return None

    async def is_environment(self, directory: str) -> bool:
        """Check for the marker file that identifies a virtual environment."""
        return await path_exists(os.path.join(directory, self.context.marker_file))

    async def executables_in(self, env_dirs: Iterable[str]) -> List[str]:
        """Resolve executables for many environment roots concurrently."""
        results = await asyncio.gather(*(self.executable_in(d) for d in env_dirs))
        return [path for path in results if path]

    # ------------------------------------------------------------------
    # Flat stores
    # ------------------------------------------------------------------

    async def scan_venv_store(self, root: str) -> List[str]:
        """
        Scan a flat store of marker-guarded virtual environments.

        Used for virtualenvwrapper, poetry, pipenv, hatch, pdm, tox and nox
        stores, where a subdirectory without the marker file is not an
        environment.

        Args:
            root: Store directory

        Returns:
            Executable paths found one level deep
        """
        env_dirs = await subdirectories(root)

        async def check(env_dir: str) -> Optional[str]:
            if not await self.is_environment(env_dir):
                return None
            return await self.executable_in(env_dir)

        results = await asyncio.gather(*(check(d) for d in env_dirs))
        return [path for path in results if path]

    async def scan_tools_store(self, root: str) -> List[str]:
        """
        Scan a flat store of tool environments (uv tool, pipx).

        Tool installers do not always write the marker file, so every
        subdirectory is checked for the executable directly.

        Args:
            root: Store directory

        Returns:
            Executable paths found one level deep
        """
        return await self.executables_in(await subdirectories(root))

    # ------------------------------------------------------------------
    # Versioned stores
    # ------------------------------------------------------------------

    async def scan_versioned_store(self, root: str) -> List[str]:
        """
        Scan a store of language-version installs (pyenv, uv python).

        Each version directory is checked directly (e.g.
        `~/.pyenv/versions/3.11.0/bin/jac`) and for nested named
        environments (`<version>/envs/<name>/bin/jac`, pyenv-virtualenv).

        Args:
            root: Store directory

        Returns:
            Executable paths from direct installs and nested environments
        """
        version_dirs = await subdirectories(root)

        async def scan_version(version_dir: str) -> List[str]:
            direct, nested = await asyncio.gather(
                self.executable_in(version_dir),
                self.scan_tools_store(os.path.join(version_dir, "envs")),
            )
            return ([direct] if direct else []) + nested

        results = await asyncio.gather(*(scan_version(d) for d in version_dirs))
        return flatten(results)

    # ------------------------------------------------------------------
    # User-local installs
    # ------------------------------------------------------------------

    async def scan_user_installs(self) -> List[str]:
        """
        Find the executable installed with `pip install --user`.

        - macOS: ~/Library/Python/X.Y/bin/<exe>
        - Linux: ~/.local/bin/<exe>
        - Windows: %APPDATA%\\Python\\PythonXY\\Scripts\\<exe>.exe

        Returns:
            Executable paths found
        """
        home = self.context.home
        if not home:
            return []

        os_name = self.context.os_name
        if os_name == MACOS:
            base = os.path.join(home, "Library", "Python")
            candidates = [
                os.path.join(d, "bin", self.context.unix_exe)
                for d in await subdirectories(base)
            ]
        elif os_name == WINDOWS:
            app_data = self.context.environ.get("APPDATA", "")
            if not app_data:
                return []
            base = os.path.join(app_data, "Python")
            candidates = [
                os.path.join(d, "Scripts", self.context.windows_exe)
                for d in await subdirectories(base)
            ]
        else:
            candidates = [os.path.join(home, ".local", "bin", self.context.unix_exe)]

        hits = await asyncio.gather(*(path_exists(c) for c in candidates))
        return [c for c, hit in zip(candidates, hits) if hit]

    # ------------------------------------------------------------------
    # Bounded walk
    # ------------------------------------------------------------------

    async def walk(
        self, base_dir: str, depth: int, budget: Optional[WalkBudget] = None
    ) -> List[str]:
        """
        Walk a tree looking for environments, bounded by depth and budget.

        Noise directories are skipped outright. A directory carrying the
        marker file is an environment: its executable (if any) is reported
        and the walk does not descend into it.

        Args:
            base_dir: Directory to start from
            depth: Remaining depth (0 visits nothing)
            budget: Shared directories-visited budget; a fresh one from the
                context is created when None

        Returns:
            Executable paths found
        """
        if budget is None:
            budget = WalkBudget(self.context.walk_budget)

        if depth <= 0 or budget.remaining <= 0:
            return []

        children = [
            d for d in await subdirectories(base_dir)
            if os.path.basename(d) not in SKIP_DIRS
        ]
        # Deduct before recursing so sibling branches share one budget
        budget.remaining -= len(children)

        async def visit(child: str) -> List[str]:
            if await self.is_environment(child):
                found = await self.executable_in(child)
                return [found] if found else []
            if depth > 1:
                return await self.walk(child, depth - 1, budget)
            return []

        results = await asyncio.gather(*(visit(c) for c in children))
        return flatten(results)

    # ------------------------------------------------------------------
    # OS-native search
    # ------------------------------------------------------------------

    async def native_search(self, root: str) -> List[str]:
        """
        Query the OS file index for environment directories under `root`.

        - macOS: Spotlight (`mdfind`), no filesystem I/O inside the tree
        - Linux: `find -maxdepth N -name <marker>`
        - Windows: not available, returns an empty list

        Args:
            root: Directory to search

        Returns:
            Environment directories (parents of marker files)
        """
        marker = self.context.marker_file
        os_name = self.context.os_name

        if os_name == MACOS:
            argv = ["mdfind", f"kMDItemFSName == {marker}", "-onlyin", root]
            return await self._run_search_command(
                argv, SPOTLIGHT_TIMEOUT, accept_errors=False
            )
        if os_name == LINUX:
            argv = [
                "find",
                root,
                "-maxdepth",
                str(self.context.native_search_depth),
                "-name",
                marker,
            ]
            # find exits non-zero on unreadable subtrees but its output is still valid
            return await self._run_search_command(
                argv, self.context.native_search_timeout, accept_errors=True
            )
        return []

    async def find_with_native_search(self, root: str) -> List[str]:
        """Native search followed by executable resolution."""
        env_dirs = await self.native_search(root)
        return await self.executables_in(unique(env_dirs))

    async def _run_search_command(
        self, argv: List[str], timeout: float, accept_errors: bool
    ) -> List[str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Native search unavailable ({argv[0]}): {e}")
            return []

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Native search timed out after {timeout}s: {argv[0]}")
            _kill(process)
            await process.wait()
            return []
        except asyncio.CancelledError:
            _kill(process)
            raise

        if process.returncode != 0 and not accept_errors:
            logger.debug(f"{argv[0]} returned {process.returncode}")
            return []

        lines = stdout.decode(errors="replace").splitlines()
        return [os.path.dirname(line.strip()) for line in lines if line.strip()]


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
