"""Reusable environment tree fixtures for testing.

This module provides helpers and pytest fixtures that lay out realistic
virtual environments on disk (executable, marker file, installed
distribution metadata) and discovery contexts rooted in a temporary home.
"""

import os
from pathlib import Path
from typing import Optional

import pytest

from envkit.discovery.context import DiscoveryContext


def make_env(
    root: Path,
    version: Optional[str] = "0.9.3",
    marker: bool = True,
    layout: str = "unix",
    executable: bool = True,
    python: str = "python3.11",
) -> str:
    """
    Create a virtual environment skeleton.

    Args:
        root: Environment root directory (created)
        version: jaclang version to record in site-packages (None for none)
        marker: Write pyvenv.cfg
        layout: 'unix' (bin/jac) or 'windows' (Scripts/jac.exe)
        executable: Create the jac executable
        python: lib/ subdirectory name for the unix layout

    Returns:
        Absolute path of the jac executable (even when not created)

    Example:
        def test_env(tmp_path):
            exe = make_env(tmp_path / ".venv", version="0.9.0")
            assert exe.endswith("bin/jac")
    """
    root.mkdir(parents=True, exist_ok=True)
    if marker:
        (root / "pyvenv.cfg").write_text("home = /usr/bin\n")

    if layout == "windows":
        exe = root / "Scripts" / "jac.exe"
        site = root / "Lib" / "site-packages"
    else:
        exe = root / "bin" / "jac"
        site = root / "lib" / python / "site-packages"

    exe.parent.mkdir(parents=True, exist_ok=True)
    if executable:
        exe.write_text("#!/bin/sh\n")
        os.chmod(exe, 0o755)

    if version:
        (site / f"jaclang-{version}.dist-info").mkdir(parents=True, exist_ok=True)

    return str(exe)


def make_context(home: Path, /, **overrides) -> DiscoveryContext:
    """
    Build a Linux discovery context rooted in a temporary home.

    PATH and workspace roots default to empty so that nothing on the host
    machine leaks into a test.
    """
    values = dict(
        home=str(home),
        os_name="linux",
        path_dirs=(),
        workspace_roots=(),
        environ={"HOME": str(home)},
    )
    values.update(overrides)
    return DiscoveryContext(**values)


@pytest.fixture
def fake_home(tmp_path) -> Path:
    """
    Create an empty home directory.

    Returns:
        Path to the home directory
    """
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def workspace(tmp_path) -> Path:
    """
    Create an empty workspace root.

    Returns:
        Path to the workspace directory
    """
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def linux_context(fake_home, workspace) -> DiscoveryContext:
    """Discovery context with a temporary home and one workspace root."""
    return make_context(fake_home, workspace_roots=(str(workspace),))


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    """Create the private storage directory with its lock subdirectory."""
    storage = tmp_path / "storage"
    (storage / "lock").mkdir(parents=True)
    return storage
