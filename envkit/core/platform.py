"""
Platform detection for envkit.

Provides the normalized operating system name, executable naming rules and
home-directory resolution used by the locators, the watcher and the
selection flow.

Usage:
    from envkit.core.platform import detect_os, executable_name

    os_name = detect_os()
    print(executable_name("jac", os_name))  # 'jac.exe' on Windows
"""

import functools
import os
import platform
from typing import List, Mapping, Optional

WINDOWS = "windows"
MACOS = "macos"
LINUX = "linux"


@functools.lru_cache(maxsize=1)
def detect_os() -> str:
    """
    Detect the current operating system.

    This function is cached - it only runs detection once per process.

    Returns:
        Normalized OS name: 'windows', 'macos' or 'linux'. Other Unix
        flavours are reported as 'linux' since they share its layout.
    """
    system = platform.system().lower()

    if system == "windows" or system.startswith(("cygwin", "msys")):
        return WINDOWS
    if system == "darwin":
        return MACOS
    return LINUX


def clear_platform_cache() -> None:
    """Clear the cached platform detection (used by tests)."""
    detect_os.cache_clear()


def executable_name(base: str, os_name: Optional[str] = None) -> str:
    """
    Get the platform-specific file name of an executable.

    Args:
        base: Executable base name (e.g., 'jac')
        os_name: OS name override (default: detected)

    Returns:
        File name, with '.exe' appended on Windows

    Example:
        >>> executable_name("jac", "windows")
        'jac.exe'
    """
    os_name = os_name or detect_os()
    if os_name == WINDOWS and not base.lower().endswith(".exe"):
        return f"{base}.exe"
    return base


def scripts_dir_name(os_name: Optional[str] = None) -> str:
    """Name of the directory holding executables inside an environment."""
    return "Scripts" if (os_name or detect_os()) == WINDOWS else "bin"


def home_directory(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Resolve the user's home directory from the environment.

    Checks HOME first, then USERPROFILE (Windows).

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Home directory path, or None if neither variable is set
    """
    environ = os.environ if environ is None else environ
    return environ.get("HOME") or environ.get("USERPROFILE") or None


def path_directories(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Split the PATH variable into its non-empty directories.

    Duplicates are kept; callers that probe the filesystem de-duplicate.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Ordered list of PATH directories
    """
    environ = os.environ if environ is None else environ
    return [entry for entry in environ.get("PATH", "").split(os.pathsep) if entry]
