"""
Presentation helpers for environments.

Pure functions that turn executable paths into short human labels for the
picker and the status line. No I/O.
"""

import os
import re
from typing import Optional, Sequence

_CONDA_ENV = re.compile(r"envs[/\\]([^/\\]+)")
_VENV_LIKE = re.compile(r"([^/\\]*(?:\.?venv|virtualenv)[^/\\]*)")


def env_name(exe_path: str) -> str:
    """
    Derive a short environment name from an executable path.

    Conda-style `envs/<name>` wins, then a venv-like folder name anywhere
    in the path, then the directory above bin/ or Scripts/.

    Example:
        >>> env_name("/home/u/miniconda3/envs/jac311/bin/jac")
        'jac311'
        >>> env_name("/home/u/project/.venv/bin/jac")
        '.venv'
    """
    match = _CONDA_ENV.search(exe_path)
    if match:
        return match.group(1)

    match = _VENV_LIKE.search(exe_path)
    if match:
        return match.group(1)

    parent_dir = os.path.dirname(exe_path)
    if os.path.basename(parent_dir) in ("bin", "Scripts"):
        return os.path.basename(os.path.dirname(parent_dir))
    return os.path.basename(parent_dir)


def format_path(path: str, home: Optional[str] = None, sep: str = os.sep) -> str:
    """
    Shorten a path for display.

    A path under the home directory is shown relative to '~'. Otherwise a
    path of more than six components keeps its first two and last three.

    Example:
        >>> format_path("/home/u/project/.venv/bin/jac", home="/home/u")
        '~/project/.venv/bin/jac'
        >>> format_path("/opt/tools/a/b/c/venv/bin/jac", sep="/")
        '/opt/.../venv/bin/jac'
    """
    if home and (path == home or path.startswith(home.rstrip(sep) + sep)):
        return "~" + path[len(home.rstrip(sep)):]

    parts = path.split(sep)
    if len(parts) > 6:
        return sep.join(parts[:2]) + f"{sep}...{sep}" + sep.join(parts[-3:])
    return path


def is_global(exe_path: str, path_dirs: Sequence[str], exe_names: Sequence[str] = ("jac", "jac.exe")) -> bool:
    """
    Check whether an executable is the PATH-resolved global install.

    True for a bare executable name, or a path sitting directly in one of
    the PATH directories.
    """
    if exe_path in exe_names:
        return True
    base = os.path.basename(exe_path)
    return any(os.path.join(d, base) == exe_path for d in path_dirs)


def status_label(
    exe_path: Optional[str],
    version: Optional[str],
    path_dirs: Sequence[str] = (),
    title: str = "Jac",
) -> str:
    """
    One-line status for the active environment.

    Example:
        >>> status_label("/usr/local/bin/jac", "0.9.0", ["/usr/local/bin"])
        'Jac 0.9.0 · Global'
        >>> status_label(None, None)
        'Jac: No Env'
    """
    if not exe_path:
        return f"{title}: No Env"

    label = f"{title} {version}" if version else title
    if is_global(exe_path, path_dirs):
        label += " · Global"
    return label


def item_label(exe_path: str, version: Optional[str], active: bool = False, title: str = "Jac") -> str:
    """Picker label: version and environment name, with a marker for the active one."""
    text = f"{title} {version}" if version else title
    name = env_name(exe_path)
    if name:
        text += f" ({name})"
    return f"* {text}" if active else text
