"""
Toolchain version detection and comparison.

Versions are read from installed package metadata: the distribution that
provides the executable leaves a `<distribution>-<version>.dist-info`
directory in the environment's site-packages. Reading it is a couple of
directory listings, with no subprocess involved.

Example:
    >>> compare_versions("0.12.0", "0.9.0") > 0
    True
    >>> await read_version("/home/user/app/.venv/bin/jac", "jaclang")
    '0.9.3'
"""

import asyncio
import logging
import os
import re
from typing import Dict, List, Optional, Sequence

from envkit.core.filesystem import list_names

logger = logging.getLogger(__name__)

DIST_INFO_SUFFIX = ".dist-info"
SITE_DIR_NAMES = ("site-packages", "dist-packages")

_LEADING_DIGITS = re.compile(r"^(\d+)")


def _segment_value(segment: str) -> int:
    # "0rc1" counts as 0, "12" as 12, "dev" as 0
    match = _LEADING_DIGITS.match(segment.strip())
    return int(match.group(1)) if match else 0


def compare_versions(a: str, b: str) -> int:
    """
    Compare two dotted version strings numerically.

    Components are compared left to right as integers; missing trailing
    components count as 0 and a component without leading digits counts
    as 0.

    Args:
        a: First version
        b: Second version

    Returns:
        Positive if a > b, negative if a < b, 0 if equal

    Example:
        >>> compare_versions("0.9", "0.9.2")
        -2
    """
    a_parts = [_segment_value(p) for p in a.split(".")]
    b_parts = [_segment_value(p) for p in b.split(".")]

    for i in range(max(len(a_parts), len(b_parts))):
        a_value = a_parts[i] if i < len(a_parts) else 0
        b_value = b_parts[i] if i < len(b_parts) else 0
        diff = a_value - b_value
        if diff != 0:
            return diff
    return 0


def _site_package_dirs(env_root: str) -> List[str]:
    dirs = []
    lib_dir = os.path.join(env_root, "lib")
    for entry in sorted(list_names(lib_dir)):
        if entry.startswith("python"):
            for site_name in SITE_DIR_NAMES:
                dirs.append(os.path.join(lib_dir, entry, site_name))
    # Windows layout
    dirs.append(os.path.join(env_root, "Lib", "site-packages"))
    return dirs


def read_version_sync(exe_path: str, distribution: str = "jaclang") -> Optional[str]:
    """
    Read the installed distribution version for an executable.

    The environment root is two levels above the executable
    (`<env>/bin/jac` or `<env>/Scripts/jac.exe`).

    Args:
        exe_path: Executable path
        distribution: Distribution name to look for

    Returns:
        Version string, or None if no metadata was found
    """
    env_root = os.path.dirname(os.path.dirname(exe_path))
    prefix = f"{distribution}-"

    for site_dir in _site_package_dirs(env_root):
        for entry in list_names(site_dir):
            if entry.startswith(prefix) and entry.endswith(DIST_INFO_SUFFIX):
                version = entry[len(prefix):-len(DIST_INFO_SUFFIX)]
                if version:
                    return version
    return None


async def read_version(exe_path: str, distribution: str = "jaclang") -> Optional[str]:
    """Awaitable version of read_version_sync()."""
    return await asyncio.to_thread(read_version_sync, exe_path, distribution)


async def read_versions(
    paths: Sequence[str], distribution: str = "jaclang"
) -> Dict[str, Optional[str]]:
    """
    Read versions for many executables concurrently.

    Returns:
        Mapping of path to version (None when undetectable), in input order
    """
    versions = await asyncio.gather(*(read_version(p, distribution) for p in paths))
    return dict(zip(paths, versions))


def pick_recommended(versions: Dict[str, Optional[str]]) -> Optional[str]:
    """
    Pick the recommended environment.

    The highest version wins; on a tie the first path in iteration order
    wins. Paths without a version are only chosen when no path has one, in
    which case the first path is returned.

    Args:
        versions: Mapping of path to version, in discovery order

    Returns:
        Recommended path, or None for an empty mapping
    """
    best_path: Optional[str] = None
    best_version: Optional[str] = None

    for path, version in versions.items():
        if version is None:
            continue
        if best_version is None or compare_versions(version, best_version) > 0:
            best_path, best_version = path, version

    if best_path is not None:
        return best_path
    return next(iter(versions), None)
