"""
PATH probing.

PathProbe answers one question: which of a set of directories contain a
file with a given name? All directory checks are in flight at once.
"""

import asyncio
import logging
import os
from typing import Iterable, List

from envkit.core.filesystem import path_exists

logger = logging.getLogger(__name__)


class PathProbe:
    """
    Probe search directories for an executable.

    Example:
        >>> probe = PathProbe(["/usr/bin", "/usr/local/bin", "/usr/bin"])
        >>> await probe.probe("jac")
        ['/usr/local/bin/jac']
    """

    def __init__(self, directories: Iterable[str]):
        """
        Initialize probe.

        Args:
            directories: Search directories in priority order. Duplicates
                and empty entries are dropped, first occurrence wins.
        """
        self.directories: List[str] = list(
            dict.fromkeys(d for d in directories if d)
        )

    async def probe(self, filename: str) -> List[str]:
        """
        Find the directories that contain `filename`.

        Args:
            filename: File name to look for (e.g., 'jac' or 'jac.exe')

        Returns:
            Paths `<dir>/<filename>` that exist, in directory order
        """
        candidates = [os.path.join(d, filename) for d in self.directories]
        hits = await asyncio.gather(*(path_exists(c) for c in candidates))

        found = [candidate for candidate, hit in zip(candidates, hits) if hit]
        logger.debug(
            f"Probed {len(candidates)} directories for {filename}: {len(found)} hit(s)"
        )
        return found

    async def any_hit(self, filename: str) -> bool:
        """Return True if any directory contains `filename`."""
        return bool(await self.probe(filename))
