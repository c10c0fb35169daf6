"""
Downstream language server process capability.

The environment manager does not speak LSP. It only needs to (re)start the
language server whenever the active executable changes. The server handle
is owned by whoever creates it and injected into the manager, so there is
exactly one live process per controller and no module-level singleton.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from envkit.core.exceptions import ServerStartError

logger = logging.getLogger(__name__)


class LanguageServerController(ABC):
    """
    Start/stop/restart capability for the downstream language server.

    start_or_restart() is idempotent: it starts a process when none is
    running and restarts the running one otherwise.
    """

    @abstractmethod
    async def start_or_restart(self) -> None:
        """Start the server, or restart it against the current executable."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the server if it is running."""
        pass

    @property
    @abstractmethod
    def running(self) -> bool:
        pass


class SubprocessLanguageServer(LanguageServerController):
    """
    Language server run as `<executable> <args...>` with stdio pipes.

    The executable is resolved through a callable each time the server
    starts, so a restart always picks up the latest selection.

    Example:
        >>> server = SubprocessLanguageServer(manager.get_jac_path, ["lsp"])
        >>> await server.start_or_restart()
        >>> server.pid
        48213
    """

    def __init__(
        self,
        executable_provider: Callable[[], str],
        args: Sequence[str] = ("lsp",),
        stop_timeout: float = 5.0,
    ):
        """
        Initialize server controller.

        Args:
            executable_provider: Returns the executable to launch
            args: Arguments passed to the executable
            stop_timeout: Seconds to wait for a graceful exit before killing
        """
        self.executable_provider = executable_provider
        self.args: List[str] = list(args)
        self.stop_timeout = stop_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self.running else None

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        """Running process (stdin/stdout carry the protocol)."""
        return self._process if self.running else None

    async def start_or_restart(self) -> None:
        """
        Start the server, stopping a running one first.

        Raises:
            ServerStartError: If the process cannot be spawned
        """
        async with self._lock:
            if self.running:
                logger.info("Restarting language server")
                await self._stop_process()
            await self._start_process()

    async def stop(self) -> None:
        async with self._lock:
            await self._stop_process()

    async def _start_process(self) -> None:
        argv = [self.executable_provider(), *self.args]
        logger.debug(f"Starting language server: {' '.join(argv)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            self._process = None
            raise ServerStartError(f"Failed to start language server {argv[0]}: {e}") from e

        logger.info(f"Language server started (pid {self._process.pid})")

    async def _stop_process(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return

        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Language server did not exit within {self.stop_timeout}s, killing"
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

        logger.debug(f"Language server stopped (exit code {process.returncode})")
