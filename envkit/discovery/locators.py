"""
Environment locators.

A locator is one independent strategy for discovering executables:

- PathLocator: the directories on PATH
- RegistryLocator: the conda registry manifest and well-known conda roots
- WorkspaceLocator: environments inside the workspace roots
- HomeLocator: tool-specific stores under the home directory

Locators have no ordering dependency on each other. Each one tolerates
partial failure of its sub-scans, and Locator.run() is a hard boundary:
whatever goes wrong inside a locator, run() returns a (possibly empty)
de-duplicated list and never raises, so one failing strategy never blocks
the others.

Usage:
    from envkit.discovery.locators import default_locators, find_all_environments

    context = DiscoveryContext.from_config(load_config())
    paths = await find_all_environments(context)
"""

import asyncio
import logging
import os
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from envkit.core.filesystem import path_exists, read_text_async, subdirectories
from envkit.discovery.context import DiscoveryContext
from envkit.discovery.known_paths import (
    get_known_paths,
    get_registry_manifest,
    get_registry_roots,
)
from envkit.discovery.probe import PathProbe
from envkit.discovery.scanner import StoreScanner, flatten, unique

logger = logging.getLogger(__name__)


class LocatorKind(Enum):
    """Identifies a discovery strategy."""

    PATH = "path"
    REGISTRY = "registry"
    WORKSPACE = "workspace"
    HOME = "home"


# =============================================================================
# Abstract Locator
# =============================================================================


class Locator(ABC):
    """
    Abstract base class for discovery strategies.

    Subclasses implement locate(); callers use run(), which adds
    de-duplication and the never-raise boundary.

    Example:
        class OptLocator(Locator):
            kind = LocatorKind.HOME

            async def locate(self) -> List[str]:
                found = await self.scanner.executable_in('/opt/jac')
                return [found] if found else []
    """

    kind: LocatorKind

    def __init__(self, context: DiscoveryContext, scanner: Optional[StoreScanner] = None):
        """
        Initialize locator.

        Args:
            context: Discovery context
            scanner: Store scanner (default: one built from the context)
        """
        self.context = context
        self.scanner = scanner or StoreScanner(context)

    @abstractmethod
    async def locate(self) -> List[str]:
        """Find executable paths. May raise; see run()."""
        pass

    async def run(self) -> List[str]:
        """
        Run the locator with failure isolation.

        Returns:
            De-duplicated executable paths; empty if the locator failed
        """
        try:
            found = unique(await self.locate())
        except Exception as e:
            logger.warning(f"{self.kind.value} locator failed: {e}")
            return []

        logger.debug(f"{self.kind.value} locator found {len(found)} executable(s)")
        return found


# =============================================================================
# Locators
# =============================================================================


class PathLocator(Locator):
    """Find the executable in every PATH directory."""

    kind = LocatorKind.PATH

    async def locate(self) -> List[str]:
        probe = PathProbe(self.context.path_dirs)
        return await probe.probe(self.context.exe_name)


class RegistryLocator(Locator):
    """
    Find the executable in conda environments.

    Candidates come from the registry manifest (`~/.conda/environments.txt`,
    one environment path per line) and from `<root>/envs/*` under each
    well-known conda root. Unique candidates are capped at
    context.max_registry_envs so a bloated registry full of stale entries
    stays cheap.
    """

    kind = LocatorKind.REGISTRY

    async def locate(self) -> List[str]:
        home = self.context.home or ""
        candidates: List[str] = []

        manifest = await read_text_async(get_registry_manifest(home)) if home else None
        if manifest:
            candidates.extend(line.strip() for line in manifest.splitlines() if line.strip())

        root_scans = await asyncio.gather(
            *(
                subdirectories(os.path.join(root, "envs"))
                for root in get_registry_roots(home)
                if os.path.isabs(root)
            )
        )
        candidates.extend(flatten(root_scans))

        capped = unique(candidates)[: self.context.max_registry_envs]
        return await self.scanner.executables_in(capped)


class WorkspaceLocator(Locator):
    """
    Find the executable in environments inside the workspace roots.

    For each root, conventional environment names (.venv, venv, ...) are
    checked first. The OS-native search and the bounded walk are started
    eagerly alongside that check; if a conventional name already answered,
    both are cancelled and the conventional hits are returned. Otherwise the
    native and walk results are unioned. Roots are searched concurrently.
    """

    kind = LocatorKind.WORKSPACE

    async def locate(self) -> List[str]:
        results = await asyncio.gather(
            *(self.locate_in_root(root) for root in self.context.workspace_roots)
        )
        return flatten(results)

    async def locate_in_root(self, root: str) -> List[str]:
        """
        Search one workspace root.

        Args:
            root: Workspace root directory

        Returns:
            Executable paths found under the root
        """
        native_task = asyncio.ensure_future(self.scanner.find_with_native_search(root))
        walk_task = asyncio.ensure_future(
            self.scanner.walk(root, self.context.walk_depth)
        )
        fallbacks = [native_task, walk_task]

        try:
            from_common = await self.scanner.executables_in(
                os.path.join(root, name) for name in self.context.common_env_names
            )
        except BaseException:
            _cancel_all(fallbacks)
            raise

        if from_common:
            _cancel_all(fallbacks)
            logger.debug(f"Conventional environment found in {root}, skipping deep search")
            return from_common

        settled = await asyncio.gather(*fallbacks, return_exceptions=True)
        found: List[str] = []
        for result in settled:
            if isinstance(result, BaseException):
                logger.debug(f"Workspace sub-scan failed in {root}: {result}")
                continue
            found.extend(result)
        return unique(found)


class HomeLocator(Locator):
    """
    Find the executable in tool stores under the home directory.

    Venv-manager stores, tool stores, Python version-install stores and the
    user-local install location are all scanned concurrently.
    """

    kind = LocatorKind.HOME

    async def locate(self) -> List[str]:
        home = self.context.home
        if not home:
            return []

        known = get_known_paths(home, self.context.os_name, self.context.environ)
        scans = (
            [self.scanner.scan_venv_store(d) for d in known.venv_manager_dirs]
            + [self.scanner.scan_tools_store(d) for d in known.tools_dirs]
            + [self.scanner.scan_versioned_store(d) for d in known.python_install_dirs]
            + [self.scanner.scan_user_installs()]
        )
        results = await asyncio.gather(*scans, return_exceptions=True)

        found: List[str] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.debug(f"Home sub-scan failed: {result}")
                continue
            found.extend(result)
        return found


# =============================================================================
# Composition
# =============================================================================


def default_locators(context: DiscoveryContext) -> Dict[LocatorKind, Locator]:
    """
    Build the four standard locators sharing one scanner.

    Returns:
        Mapping of kind to locator, in PATH, registry, workspace, home order
    """
    scanner = StoreScanner(context)
    locators = [
        PathLocator(context, scanner),
        RegistryLocator(context, scanner),
        WorkspaceLocator(context, scanner),
        HomeLocator(context, scanner),
    ]
    return {locator.kind: locator for locator in locators}


async def find_all_environments(
    context: DiscoveryContext, locators: Optional[Iterable[Locator]] = None
) -> List[str]:
    """
    Run all locators concurrently and return the de-duplicated union.

    Args:
        context: Discovery context
        locators: Locators to run (default: default_locators(context))

    Returns:
        Executable paths, in locator order then discovery order
    """
    if locators is None:
        locators = default_locators(context).values()
    results = await asyncio.gather(*(locator.run() for locator in locators))
    return unique(flatten(results))


# =============================================================================
# Validation
# =============================================================================


async def validate_executable(path: str, path_dirs: Sequence[str]) -> bool:
    """
    Check that an executable exists, without running it.

    Args:
        path: Absolute executable path, or a bare name to resolve on PATH
        path_dirs: PATH directories used for bare names

    Returns:
        True if the absolute path exists, or the bare name is found on PATH
    """
    if not path:
        return False
    if os.path.isabs(path):
        return await path_exists(path)
    return await PathProbe(path_dirs).any_hit(path)


def has_executable_layout(path: str, executable: str = "jac") -> bool:
    """
    Check the path shape of an environment executable.

    Accepted shapes are `.../bin/<exe>` and `.../Scripts/<exe>.exe`
    (case-insensitive, either separator).

    Example:
        >>> has_executable_layout("/home/u/.venv/bin/jac")
        True
        >>> has_executable_layout("/home/u/jac")
        False
    """
    normalized = path.replace("\\", "/").lower()
    exe = executable.lower()
    return normalized.endswith(f"/bin/{exe}") or normalized.endswith(
        f"/scripts/{exe}.exe"
    )


def _fast_validate_sync(path: str, executable: str, check_mode: bool) -> bool:
    if not has_executable_layout(path, executable):
        return False
    if not os.path.isfile(path):
        return False
    if not check_mode:
        return True
    return os.access(path, os.X_OK)


async def fast_validate(
    path: str, executable: str = "jac", check_mode: Optional[bool] = None
) -> bool:
    """
    Validate an executable quickly: layout, existence and permissions.

    Args:
        path: Executable path
        executable: Executable base name
        check_mode: Check the executable bit (default: on everything but
            Windows)

    Returns:
        True if the path looks like and is a usable executable
    """
    if check_mode is None:
        check_mode = sys.platform != "win32"
    return await asyncio.to_thread(_fast_validate_sync, path, executable, check_mode)


async def fast_validate_many(
    paths: Sequence[str], executable: str = "jac", check_mode: Optional[bool] = None
) -> List[str]:
    """
    Validate many executables concurrently.

    Returns:
        The valid paths, in input order
    """
    results = await asyncio.gather(
        *(fast_validate(p, executable, check_mode) for p in paths)
    )
    return [p for p, ok in zip(paths, results) if ok]


def _cancel_all(tasks: Iterable["asyncio.Future"]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
