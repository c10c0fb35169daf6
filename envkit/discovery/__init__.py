"""
Environment discovery for envkit.

Concurrent, failure-tolerant filesystem probes that find the toolchain
executable on PATH, in conda environments, in the workspace and in the
tool stores under the home directory.
"""

from .context import DiscoveryContext
from .known_paths import KnownPaths, get_known_paths, get_registry_roots
from .locators import (
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
    validate_executable,
)
from .probe import PathProbe
from .scanner import StoreScanner, WalkBudget
from .version import compare_versions, pick_recommended, read_version

__all__ = [
    "DiscoveryContext",
    "KnownPaths",
    "get_known_paths",
    "get_registry_roots",
    "HomeLocator",
    "Locator",
    "LocatorKind",
    "PathLocator",
    "RegistryLocator",
    "WorkspaceLocator",
    "default_locators",
    "fast_validate",
    "fast_validate_many",
    "find_all_environments",
    "validate_executable",
    "PathProbe",
    "StoreScanner",
    "WalkBudget",
    "compare_versions",
    "pick_recommended",
    "read_version",
]
