"""
Tests for the language server process controller.

Uses the running Python interpreter as a stand-in server executable.
"""

import sys

import pytest

from envkit.core.exceptions import ServerStartError
from envkit.environment.server import SubprocessLanguageServer

SLEEPER = ["-c", "import time; time.sleep(30)"]
STUBBORN = [
    "-c",
    "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(30)",
]


def _python():
    return sys.executable


class TestSubprocessLanguageServer:
    """Tests for SubprocessLanguageServer."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        server = SubprocessLanguageServer(_python, SLEEPER, stop_timeout=5)
        assert server.running is False
        assert server.pid is None

        await server.start_or_restart()
        try:
            assert server.running is True
            assert server.pid is not None
            assert server.process.stdin is not None
        finally:
            await server.stop()

        assert server.running is False
        assert server.process is None

    @pytest.mark.asyncio
    async def test_restart_replaces_process(self):
        server = SubprocessLanguageServer(_python, SLEEPER)
        await server.start_or_restart()
        first = server.process
        try:
            await server.start_or_restart()
            assert server.pid != first.pid
            assert first.returncode is not None
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_executable_resolved_on_each_start(self):
        calls = []

        def provider():
            calls.append(1)
            return sys.executable

        server = SubprocessLanguageServer(provider, SLEEPER)
        await server.start_or_restart()
        await server.start_or_restart()
        await server.stop()

        assert len(calls) == 2

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    @pytest.mark.asyncio
    async def test_stop_kills_after_timeout(self):
        server = SubprocessLanguageServer(_python, STUBBORN, stop_timeout=0.3)
        await server.start_or_restart()
        process = server.process

        await server.stop()

        assert process.returncode is not None
        assert server.running is False

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self):
        server = SubprocessLanguageServer(_python, SLEEPER)
        await server.stop()
        assert server.running is False

    @pytest.mark.asyncio
    async def test_start_failure(self, temp_dir):
        missing = str(temp_dir / "nope" / "bin" / "jac")
        server = SubprocessLanguageServer(lambda: missing, ["lsp"])

        with pytest.raises(ServerStartError):
            await server.start_or_restart()
        assert server.running is False
