"""
Discovery context: everything the locators need to know about the machine.

The context is an immutable snapshot of the target executable naming, the
search limits, the home directory, the PATH and the workspace roots. Tests
build one directly with a temporary home and PATH instead of patching the
process environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from envkit.config.parser import DEFAULT_COMMON_ENV_NAMES, EnvKitConfig
from envkit.core.platform import (
    WINDOWS,
    detect_os,
    executable_name,
    home_directory,
    path_directories,
)


@dataclass(frozen=True)
class DiscoveryContext:
    """
    Inputs shared by every locator.

    Attributes:
        executable: Executable base name (e.g., 'jac')
        distribution: Distribution that installs it (e.g., 'jaclang')
        marker_file: File marking a directory as a virtual environment
        common_env_names: Environment directory names probed at workspace roots
        workspace_roots: Workspace root directories
        home: Home directory (None disables home-based locators)
        os_name: 'windows', 'macos' or 'linux'
        path_dirs: PATH directories in order
        environ: Environment variables used for XDG/AppData resolution
        max_registry_envs: Cap on candidate environments from the registry
        walk_depth: Maximum depth of the bounded workspace walk
        walk_budget: Directories-visited budget of one bounded walk
        native_search_depth: Depth passed to the OS-native search
        native_search_timeout: Timeout in seconds for the OS-native search
    """

    executable: str = "jac"
    distribution: str = "jaclang"
    marker_file: str = "pyvenv.cfg"
    common_env_names: Tuple[str, ...] = tuple(DEFAULT_COMMON_ENV_NAMES)
    workspace_roots: Tuple[str, ...] = ()
    home: Optional[str] = None
    os_name: str = field(default_factory=detect_os)
    path_dirs: Tuple[str, ...] = ()
    environ: Mapping[str, str] = field(default_factory=dict)
    max_registry_envs: int = 30
    walk_depth: int = 3
    walk_budget: int = 80
    native_search_depth: int = 4
    native_search_timeout: float = 3.0

    @property
    def exe_name(self) -> str:
        """Executable file name on this platform."""
        return executable_name(self.executable, self.os_name)

    @property
    def unix_exe(self) -> str:
        """Executable name in a Unix layout environment (bin/)."""
        return self.executable

    @property
    def windows_exe(self) -> str:
        """Executable name in a Windows layout environment (Scripts/)."""
        return executable_name(self.executable, WINDOWS)

    @property
    def is_windows(self) -> bool:
        return self.os_name == WINDOWS

    @classmethod
    def from_config(
        cls,
        config: EnvKitConfig,
        workspace_roots: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        os_name: Optional[str] = None,
    ) -> "DiscoveryContext":
        """
        Build a context from configuration and the process environment.

        Args:
            config: Loaded configuration
            workspace_roots: Workspace roots overriding config.workspace_roots;
                when both are empty the current directory is used
            environ: Environment mapping (default: os.environ)
            os_name: OS override (default: detected)

        Returns:
            DiscoveryContext instance
        """
        environ = dict(os.environ if environ is None else environ)
        roots: List[str] = list(workspace_roots or config.workspace_roots)
        if not roots:
            roots = [os.getcwd()]

        discovery = config.discovery
        return cls(
            executable=config.executable,
            distribution=config.distribution,
            marker_file=config.marker_file,
            common_env_names=tuple(config.common_env_names),
            workspace_roots=tuple(
                os.path.abspath(os.path.expanduser(root)) for root in roots
            ),
            home=home_directory(environ),
            os_name=os_name or detect_os(),
            path_dirs=tuple(path_directories(environ)),
            environ=environ,
            max_registry_envs=discovery.max_registry_envs,
            walk_depth=discovery.walk_depth,
            walk_budget=discovery.walk_budget,
            native_search_depth=discovery.native_search_depth,
            native_search_timeout=discovery.native_search_timeout,
        )
