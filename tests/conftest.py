"""
Pytest configuration and shared fixtures for envkit tests.
"""

import pytest
import tempfile
from pathlib import Path
from typing import Generator

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.environments import (
    fake_home,
    workspace,
    linux_context,
    storage_dir,
)
from tests.fixtures.managers import envs, make_manager


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_yaml(temp_dir: Path) -> Path:
    """Create sample envkit.yaml configuration."""
    config_content = """version: 1
executable: jac
distribution: jaclang
workspace_roots:
  - ~/projects/app
discovery:
  staleness_seconds: 10
  max_registry_envs: 5
watcher:
  settle_delay: 0.2
server:
  args: [lsp, --verbose]
"""
    config_file = temp_dir / "envkit.yaml"
    config_file.write_text(config_content)
    return config_file


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake = temp_dir / "home"
    fake.mkdir()

    monkeypatch.setenv("HOME", str(fake))
    monkeypatch.setenv("USERPROFILE", str(fake))
    monkeypatch.setenv("ENVKIT_HOME", str(temp_dir / "storage"))

    return fake
