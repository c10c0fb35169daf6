"""
Filesystem watcher for executable creation and deletion.

EnvWatcher keeps the discovery snapshot fresh between scans. It watches:

- each workspace root, deeply, for `<env>/bin/<exe>`; plus a shallow watch
  for `<env>/pyvenv.cfg` one level down which arms a pinpoint watch on the
  new environment's bin directory the moment the environment is provisioned
- the home stores: flat stores one level deep (`<store>/<env>/bin/<exe>`),
  version-install stores deeply
- every PATH directory, for the exact executable file name
- the conda registry manifest (`~/.conda/environments.txt`), create or
  modify

Events come from a watchdog Observer thread and are handed to the asyncio
loop with call_soon_threadsafe; every callback runs on the loop thread.
Creation callbacks fire after a settle delay so a multi-file install can
finish writing; registry bursts collapse into one callback after a quiet
period.

Example:
    >>> watcher = EnvWatcher(callbacks, context)
    >>> watcher.start()
    >>> ...
    >>> watcher.dispose()
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from envkit.core.exceptions import WatcherError
from envkit.core.platform import scripts_dir_name
from envkit.discovery.context import DiscoveryContext
from envkit.discovery.known_paths import REGISTRY_MANIFEST, get_known_paths

logger = logging.getLogger(__name__)

CREATED = "created"
DELETED = "deleted"
MODIFIED = "modified"

REGISTRY_FILE = os.path.basename(REGISTRY_MANIFEST)

Matcher = Callable[[Tuple[str, ...]], bool]


@dataclass
class WatcherCallbacks:
    """
    Receivers for watcher notifications.

    Attributes:
        on_created: Called with the executable path after the settle delay
        on_deleted: Called with the executable path as soon as it is removed
        on_registry_changed: Called once per burst of registry changes
    """

    on_created: Callable[[str], None]
    on_deleted: Callable[[str], None]
    on_registry_changed: Callable[[], None]


# =============================================================================
# Path Rules
# =============================================================================


def _relative_parts(path: str, root: str) -> Tuple[str, ...]:
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        return ()
    if rel.startswith(os.pardir):
        return ()
    return tuple(p for p in rel.replace("\\", "/").split("/") if p and p != ".")


class _RuleHandler(FileSystemEventHandler):
    """Route raw watchdog events for one watch root into the loop."""

    def __init__(self, watcher: "EnvWatcher", root: str, matcher: Matcher, kind: str):
        self.watcher = watcher
        self.root = root
        self.matcher = matcher
        self.kind = kind

    def _emit(self, event_type: str, path: str) -> None:
        if not self.matcher(_relative_parts(path, self.root)):
            return
        self.watcher._post(self, event_type, path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(CREATED, os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(DELETED, os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(MODIFIED, os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(DELETED, os.fsdecode(event.src_path))
        self._emit(CREATED, os.fsdecode(event.dest_path))


# Handler kinds
BINARY = "binary"
MARKER = "marker"
PINPOINT = "pinpoint"
REGISTRY = "registry"


class EnvWatcher:
    """
    Watch environment locations for the target executable.

    Calling start() again re-arms from scratch: existing watches are
    disposed first. dispose() releases every watch and cancels every
    pending timer.
    """

    def __init__(
        self,
        callbacks: WatcherCallbacks,
        context: DiscoveryContext,
        settle_delay: float = 1.0,
        registry_debounce: float = 0.5,
        pinpoint_timeout: float = 3600.0,
        observer_factory: Callable[[], Observer] = Observer,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize watcher.

        Args:
            callbacks: Notification receivers
            context: Discovery context (roots, home, PATH, naming)
            settle_delay: Seconds to wait before reporting a created executable
            registry_debounce: Quiet period collapsing registry change bursts
            pinpoint_timeout: Lifetime of an untriggered pinpoint watch
            observer_factory: Builds the watchdog observer
            loop: Event loop receiving events (default: running loop at start())
        """
        self.callbacks = callbacks
        self.context = context
        self.settle_delay = settle_delay
        self.registry_debounce = registry_debounce
        self.pinpoint_timeout = pinpoint_timeout
        self.observer_factory = observer_factory
        self.loop = loop

        self._observer = None
        self._watches: Dict[_RuleHandler, object] = {}
        self._pending_created: Dict[str, asyncio.TimerHandle] = {}
        self._pinpoint_guards: Dict[_RuleHandler, asyncio.TimerHandle] = {}
        self._registry_timer: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------
    # Path rules
    # ------------------------------------------------------------------

    def _is_binary_tail(self, parts: Tuple[str, ...]) -> bool:
        return parts[-2:] in (
            ("bin", self.context.unix_exe),
            ("Scripts", self.context.windows_exe),
        )

    def deep_binary(self, parts: Tuple[str, ...]) -> bool:
        """`**/bin/<exe>` at any depth."""
        return len(parts) >= 2 and self._is_binary_tail(parts)

    def shallow_binary(self, parts: Tuple[str, ...]) -> bool:
        """`*/bin/<exe>` exactly one environment level down."""
        return len(parts) == 3 and self._is_binary_tail(parts)

    def exact_binary(self, parts: Tuple[str, ...]) -> bool:
        """The executable file directly in the watched directory."""
        return parts == (self.context.exe_name,)

    def marker(self, parts: Tuple[str, ...]) -> bool:
        """`*/pyvenv.cfg` one level down."""
        return len(parts) == 2 and parts[1] == self.context.marker_file

    @staticmethod
    def registry_file(parts: Tuple[str, ...]) -> bool:
        return parts == (REGISTRY_FILE,)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._observer is not None

    @property
    def watched_directories(self) -> List[str]:
        """Directories currently watched (for diagnostics)."""
        return [handler.root for handler in self._watches]

    def start(self) -> None:
        """
        Establish all watches.

        Directories that do not exist are skipped.

        Raises:
            WatcherError: If the observer cannot be started
        """
        self.dispose()
        if self.loop is None:
            self.loop = asyncio.get_running_loop()

        observer = self.observer_factory()
        self._observer = observer

        for root in self.context.workspace_roots:
            self._watch(root, self.deep_binary, BINARY, recursive=True)
            self._watch(root, self.marker, MARKER, recursive=True)

        home = self.context.home
        if home:
            known = get_known_paths(home, self.context.os_name, self.context.environ)
            for store in known.flat_stores:
                self._watch(store, self.shallow_binary, BINARY, recursive=True)
            for store in known.python_install_dirs:
                self._watch(store, self.deep_binary, BINARY, recursive=True)
            registry_dir = os.path.dirname(os.path.join(home, REGISTRY_MANIFEST))
            self._watch(registry_dir, self.registry_file, REGISTRY, recursive=False)

        for directory in dict.fromkeys(self.context.path_dirs):
            self._watch(directory, self.exact_binary, BINARY, recursive=False)

        try:
            observer.start()
        except Exception as e:
            self.dispose()
            raise WatcherError(f"Failed to start filesystem observer: {e}") from e

        logger.info(f"Watching {len(self._watches)} location(s) for {self.context.exe_name}")

    def dispose(self) -> None:
        """Release all watches and cancel pending timers."""
        for handle in self._pending_created.values():
            handle.cancel()
        self._pending_created.clear()

        for handle in self._pinpoint_guards.values():
            handle.cancel()
        self._pinpoint_guards.clear()

        if self._registry_timer is not None:
            self._registry_timer.cancel()
            self._registry_timer = None

        observer = self._observer
        self._observer = None
        self._watches.clear()
        if observer is not None:
            try:
                observer.unschedule_all()
                observer.stop()
                if observer.is_alive():
                    observer.join(timeout=2)
            except Exception as e:
                logger.debug(f"Error while stopping observer: {e}")

    def _watch(self, directory: str, matcher: Matcher, kind: str, recursive: bool) -> Optional[_RuleHandler]:
        if not directory or not os.path.isdir(directory):
            return None

        handler = _RuleHandler(self, directory, matcher, kind)
        try:
            watch = self._observer.schedule(handler, directory, recursive=recursive)
        except OSError as e:
            logger.debug(f"Cannot watch {directory}: {e}")
            return None

        self._watches[handler] = watch
        logger.debug(f"Watching {directory} ({kind}, recursive={recursive})")
        return handler

    def _unwatch(self, handler: _RuleHandler) -> None:
        watch = self._watches.pop(handler, None)
        if watch is None or self._observer is None:
            return
        try:
            # watchdog shares one watch per (path, recursive) between handlers
            if any(other == watch for other in self._watches.values()):
                self._observer.remove_handler_for_watch(handler, watch)
            else:
                self._observer.unschedule(watch)
        except (KeyError, OSError) as e:
            logger.debug(f"Error while removing watch on {handler.root}: {e}")

    # ------------------------------------------------------------------
    # Event routing (loop thread)
    # ------------------------------------------------------------------

    def _post(self, handler: _RuleHandler, event_type: str, path: str) -> None:
        # Called from the observer thread
        loop = self.loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._dispatch, handler, event_type, path)

    def _dispatch(self, handler: _RuleHandler, event_type: str, path: str) -> None:
        if handler not in self._watches:
            # Event raced with dispose()
            return

        if handler.kind == REGISTRY:
            if event_type in (CREATED, MODIFIED):
                self._schedule_registry_changed()
        elif handler.kind == MARKER:
            if event_type == CREATED:
                self.watch_new_environment(os.path.dirname(path))
        elif handler.kind == PINPOINT:
            if event_type == CREATED:
                self._dispose_pinpoint(handler)
                self._schedule_created(path)
        elif event_type == CREATED:
            self._schedule_created(path)
        elif event_type == DELETED:
            self._report_deleted(path)

    def watch_new_environment(self, env_dir: str) -> None:
        """
        Arm a pinpoint watch on a freshly provisioned environment.

        The watch fires once for the executable appearing in the
        environment's bin directory, then removes itself. It is removed
        after pinpoint_timeout seconds even if it never fires.

        Args:
            env_dir: Environment root that just received its marker file
        """
        if self._observer is None:
            return
        bin_dir = os.path.join(env_dir, scripts_dir_name(self.context.os_name))
        handler = self._watch(bin_dir, self.exact_binary, PINPOINT, recursive=False)
        if handler is None:
            return

        self._pinpoint_guards[handler] = self.loop.call_later(
            self.pinpoint_timeout, self._dispose_pinpoint, handler
        )
        logger.debug(f"Armed pinpoint watch on {bin_dir}")

    def _dispose_pinpoint(self, handler: _RuleHandler) -> None:
        guard = self._pinpoint_guards.pop(handler, None)
        if guard is not None:
            guard.cancel()
        self._unwatch(handler)

    def _schedule_created(self, path: str) -> None:
        if path in self._pending_created:
            return
        self._pending_created[path] = self.loop.call_later(
            self.settle_delay, self._report_created, path
        )

    def _report_created(self, path: str) -> None:
        self._pending_created.pop(path, None)
        logger.info(f"Executable created: {path}")
        self._invoke(self.callbacks.on_created, path)

    def _report_deleted(self, path: str) -> None:
        pending = self._pending_created.pop(path, None)
        if pending is not None:
            pending.cancel()
        logger.info(f"Executable deleted: {path}")
        self._invoke(self.callbacks.on_deleted, path)

    def _schedule_registry_changed(self) -> None:
        if self._registry_timer is not None:
            self._registry_timer.cancel()
        self._registry_timer = self.loop.call_later(
            self.registry_debounce, self._report_registry_changed
        )

    def _report_registry_changed(self) -> None:
        self._registry_timer = None
        logger.info("Environment registry changed")
        self._invoke(self.callbacks.on_registry_changed)

    @staticmethod
    def _invoke(callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"Watcher callback failed: {e}")
