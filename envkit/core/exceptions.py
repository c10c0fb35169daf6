"""
Centralized exception hierarchy for envkit.

Discovery code never raises these: locators absorb I/O errors and return
empty results. They are raised by configuration parsing, persistence of the
active selection, explicit selection of an invalid executable, and the
language server capability.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class EnvKitError(Exception):
    """Base exception for all envkit errors."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigError(EnvKitError):
    """Configuration parsing or validation error."""

    pass


# ============================================================================
# Persistence Exceptions
# ============================================================================


class StateError(EnvKitError):
    """Raised when the persisted state store cannot be read or written."""

    pass


class StateLockTimeout(StateError):
    """Raised when the state store lock cannot be acquired within timeout."""

    pass


# ============================================================================
# Environment Exceptions
# ============================================================================


class EnvironmentSelectionError(EnvKitError):
    """Base exception for environment selection errors."""

    pass


class EnvironmentNotFoundError(EnvironmentSelectionError):
    """Raised when no environment could be discovered or selected."""

    pass


class InvalidExecutableError(EnvironmentSelectionError):
    """Raised when a path does not point to a usable executable."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a valid executable: {path}")


# ============================================================================
# Language Server Exceptions
# ============================================================================


class ServerError(EnvKitError):
    """Base exception for language server process errors."""

    pass


class ServerStartError(ServerError):
    """Raised when the language server process fails to start."""

    pass


# ============================================================================
# Watcher Exceptions
# ============================================================================


class WatcherError(EnvKitError):
    """Raised when filesystem watches cannot be established."""

    pass
