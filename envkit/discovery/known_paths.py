"""
Well-known environment store locations per platform.

Classifies the directories where each tool keeps its environments, split by
layout so the scanner and the watcher can treat each kind correctly:

- venv manager stores: each immediate subdirectory is a virtual environment
  carrying the marker file (virtualenvwrapper, poetry, pipenv, hatch, pdm,
  tox, nox, direnv)
- tool stores: each subdirectory is a named tool environment, without the
  marker file guarantee (uv tool, pipx)
- Python install stores: each subdirectory is a Python version install,
  optionally with nested named environments (pyenv, uv python)

Linux paths honour XDG_DATA_HOME and XDG_CACHE_HOME; Windows paths honour
APPDATA and LOCALAPPDATA.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping

from envkit.core.platform import MACOS, WINDOWS

REGISTRY_MANIFEST = os.path.join(".conda", "environments.txt")


@dataclass
class KnownPaths:
    """
    Environment store directories for one platform.

    Attributes:
        venv_manager_dirs: Flat stores of marker-guarded virtual environments
        tools_dirs: Flat stores of named tool environments
        python_install_dirs: Version-install stores (two-level)
    """

    venv_manager_dirs: List[str] = field(default_factory=list)
    tools_dirs: List[str] = field(default_factory=list)
    python_install_dirs: List[str] = field(default_factory=list)

    @property
    def flat_stores(self) -> List[str]:
        """All one-level stores."""
        return self.venv_manager_dirs + self.tools_dirs


def get_known_paths(home: str, os_name: str, environ: Mapping[str, str]) -> KnownPaths:
    """
    Get the platform-specific environment store paths.

    Args:
        home: Home directory
        os_name: 'windows', 'macos' or 'linux'
        environ: Environment variables (XDG / AppData resolution)

    Returns:
        KnownPaths for the platform
    """
    join = os.path.join

    if os_name == WINDOWS:
        app_data = environ.get("APPDATA", "")
        local_app_data = environ.get("LOCALAPPDATA", "")

        def under(base: str, *parts: str) -> List[str]:
            # Unset AppData variables would yield cwd-relative stores
            return [join(base, *parts)] if base else []

        return KnownPaths(
            venv_manager_dirs=[
                join(home, ".virtualenvs"),
                join(home, "Envs"),
                *under(app_data, "pypoetry", "Cache", "virtualenvs"),
                *under(local_app_data, "pypoetry", "Cache", "virtualenvs"),
                *under(local_app_data, "pypa", "pipenv", "venvs"),
                *under(local_app_data, "hatch", "env", "virtual"),
                *under(app_data, "pdm", "venvs"),
                *under(local_app_data, "pdm", "venvs"),
                join(home, ".tox"),
                join(home, ".nox"),
            ],
            tools_dirs=[
                *under(local_app_data, "uv", "tools"),
                join(home, ".local", "share", "pipx", "venvs"),
            ],
            python_install_dirs=[
                join(home, ".pyenv", "pyenv-win", "versions"),
                *under(local_app_data, "uv", "python"),
            ],
        )

    if os_name == MACOS:
        app_support = join(home, "Library", "Application Support")
        return KnownPaths(
            venv_manager_dirs=[
                join(home, ".virtualenvs"),
                join(home, "Library", "Caches", "pypoetry", "virtualenvs"),
                join(home, ".cache", "pypoetry", "virtualenvs"),
                join(home, ".local", "share", "virtualenvs"),
                join(app_support, "hatch", "env", "virtual"),
                join(app_support, "pdm", "venvs"),
                join(home, ".tox"),
                join(home, ".nox"),
                join(home, ".direnv"),
            ],
            tools_dirs=[
                join(home, ".local", "share", "uv", "tools"),
                join(home, ".local", "share", "pipx", "venvs"),
            ],
            python_install_dirs=[
                join(home, ".pyenv", "versions"),
                join(home, ".local", "share", "uv", "python"),
            ],
        )

    xdg_data = environ.get("XDG_DATA_HOME") or join(home, ".local", "share")
    xdg_cache = environ.get("XDG_CACHE_HOME") or join(home, ".cache")
    return KnownPaths(
        venv_manager_dirs=[
            join(home, ".virtualenvs"),
            join(xdg_cache, "pypoetry", "virtualenvs"),
            join(xdg_data, "virtualenvs"),
            join(xdg_data, "hatch", "env", "virtual"),
            join(xdg_data, "pdm", "venvs"),
            join(home, ".tox"),
            join(home, ".nox"),
            join(home, ".direnv"),
        ],
        tools_dirs=[
            join(xdg_data, "uv", "tools"),
            join(xdg_data, "pipx", "venvs"),
        ],
        python_install_dirs=[
            join(home, ".pyenv", "versions"),
            join(xdg_data, "uv", "python"),
        ],
    )


def get_registry_roots(home: str) -> List[str]:
    """
    Get the well-known conda installation roots.

    Each root may hold an `envs/` directory of named environments.

    Args:
        home: Home directory

    Returns:
        Candidate root directories (existence not checked)
    """
    return [
        os.path.join(home, "anaconda3"),
        os.path.join(home, "miniconda3"),
        os.path.join(home, "miniforge3"),
        os.path.join(home, "mambaforge"),
        "/opt/anaconda3",
        "/opt/miniconda3",
        "/opt/homebrew/Caskroom/miniforge/base",
        "/opt/homebrew/Caskroom/mambaforge/base",
    ]


def get_registry_manifest(home: str) -> str:
    """Path of the conda registry manifest (one environment path per line)."""
    return os.path.join(home, REGISTRY_MANIFEST)
