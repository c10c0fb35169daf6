"""
Environment manager: discovery orchestration and active selection.

EnvManager runs the four locators concurrently, merges their results into
one snapshot as each settles, persists the union once every locator has
settled and recommends the highest-version environment. It also owns the
active selection and applies watcher notifications to the snapshot.

Discovery state machine:

    IDLE --start()--> RUNNING --first locator settles--> SETTLING
    SETTLING --all settled, cache persisted, recommendation--> SETTLED
    any --invalidate()--> IDLE

Locator tasks live in a table keyed by LocatorKind. start() is a no-op
while the table is populated, so a kind never has two live tasks.
invalidate() clears the table and bumps nothing else: the snapshot stays
stale-but-usable until the next start() resets it. Results arriving from a
task of an older generation are still merged in the background, minus any
path that has since been deleted or no longer exists on disk.

Everything runs on one asyncio loop; the snapshot is only mutated between
suspension points, so it needs no locking. Cache writes are serialized and
always write the latest snapshot.

Example:
    >>> manager = create_env_manager(config)
    >>> records = await manager.discover()
    >>> manager.snapshot.recommended
    '/home/user/project/.venv/bin/jac'
    >>> await manager.select(records[0].path)
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import (
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

from envkit.core.exceptions import EnvKitError, InvalidExecutableError, StateError
from envkit.core.filesystem import path_exists
from envkit.core.state import ACTIVE_ENV_KEY, StateStore
from envkit.discovery.context import DiscoveryContext
from envkit.discovery.locators import (
    Locator,
    LocatorKind,
    default_locators,
    validate_executable,
)
from envkit.discovery.version import pick_recommended, read_version, read_versions
from envkit.environment.cache import EnvCache
from envkit.environment.server import LanguageServerController
from envkit.environment.watcher import WatcherCallbacks

logger = logging.getLogger(__name__)

Validator = Callable[[str], Awaitable[bool]]


class DiscoveryState(Enum):
    """Lifecycle of one discovery run."""

    IDLE = "idle"
    RUNNING = "running"
    SETTLING = "settling"
    SETTLED = "settled"


class EventKind(Enum):
    """What changed in the snapshot."""

    LOCATOR = "locator"  # one locator settled
    SETTLED = "settled"  # all locators settled, recommendation computed
    ADDED = "added"  # paths added outside a locator run
    PRUNED = "pruned"  # paths removed


@dataclass(frozen=True)
class EnvironmentRecord:
    """
    A discovered environment.

    Attributes:
        path: Absolute executable path (identity)
        version: Installed distribution version, if detectable
    """

    path: str
    version: Optional[str] = None


@dataclass(frozen=True)
class DiscoverySnapshot:
    """
    Point-in-time copy of the manager's belief about known environments.

    Attributes:
        cached_paths: Known executable paths, in discovery order
        recommended: Highest-version path once a run has settled
        state: Discovery state when the copy was taken
        generation: Discovery run counter
        versions: Known versions by path
    """

    cached_paths: Tuple[str, ...] = ()
    recommended: Optional[str] = None
    state: DiscoveryState = DiscoveryState.IDLE
    generation: int = 0
    versions: Mapping[str, Optional[str]] = field(default_factory=dict)

    @property
    def records(self) -> List[EnvironmentRecord]:
        return [EnvironmentRecord(p, self.versions.get(p)) for p in self.cached_paths]


@dataclass(frozen=True)
class DiscoveryEvent:
    """
    Snapshot change notification.

    Attributes:
        kind: What changed
        snapshot: Snapshot after the change
        locator: Locator that settled (LOCATOR events only)
        paths: Paths reported, added or pruned
    """

    kind: EventKind
    snapshot: DiscoverySnapshot
    locator: Optional[LocatorKind] = None
    paths: Tuple[str, ...] = ()


Listener = Callable[[DiscoveryEvent], None]


class EnvManager:
    """
    Discovery orchestrator and active environment owner.

    Collaborators are injected: the locators, the path cache, the key-value
    state store holding the active selection, the executable validator and
    the downstream language server.
    """

    def __init__(
        self,
        context: DiscoveryContext,
        cache: EnvCache,
        state_store: StateStore,
        server: Optional[LanguageServerController] = None,
        locators: Optional[Mapping[LocatorKind, Locator]] = None,
        validator: Optional[Validator] = None,
        staleness_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize manager.

        Args:
            context: Discovery context
            cache: Persistent path cache (seeds the snapshot)
            state_store: Store holding the active selection
            server: Language server restarted on selection (optional)
            locators: Locators by kind (default: the four standard ones)
            validator: Async `path -> bool` (default: existence on disk or PATH)
            staleness_seconds: Age after which a discovery run is stale
            clock: Monotonic clock (injectable for tests)
        """
        self.context = context
        self.cache = cache
        self.state_store = state_store
        self.server = server
        self.locators: Dict[LocatorKind, Locator] = dict(
            locators if locators is not None else default_locators(context)
        )
        self.validator: Validator = validator or partial(
            validate_executable, path_dirs=context.path_dirs
        )
        self.staleness_seconds = staleness_seconds
        self.clock = clock

        self._tasks: Dict[LocatorKind, asyncio.Task] = {}
        self._settled_kinds: Set[LocatorKind] = set()
        self._generation = 0
        self._state = DiscoveryState.IDLE
        self._started_at: Optional[float] = None
        self._settled_future: Optional[asyncio.Future] = None
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        # Deleted path -> generation current at deletion time
        self._tombstones: Dict[str, int] = {}
        self._persist_lock = asyncio.Lock()

        seed = cache.load() or []
        # Ordered set: dict keys keep discovery order
        self._paths: Dict[str, None] = dict.fromkeys(seed)
        self._last_known: List[str] = list(self._paths)
        self._versions: Dict[str, Optional[str]] = {}
        self._recommended: Optional[str] = None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def state(self) -> DiscoveryState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> DiscoverySnapshot:
        return DiscoverySnapshot(
            cached_paths=tuple(self._paths),
            recommended=self._recommended,
            state=self._state,
            generation=self._generation,
            versions=dict(self._versions),
        )

    @property
    def last_known_paths(self) -> List[str]:
        """Union of the last settled run (or the cache before any run)."""
        return list(self._last_known)

    def records(self) -> List[EnvironmentRecord]:
        return self.snapshot.records

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a snapshot listener.

        Listeners are called synchronously on the loop thread.

        Returns:
            Function that unsubscribes the listener
        """
        self._listeners.append(listener)
        return partial(self.unsubscribe, listener)

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _publish(
        self,
        kind: EventKind,
        locator: Optional[LocatorKind] = None,
        paths: Iterable[str] = (),
    ) -> None:
        event = DiscoveryEvent(kind, self.snapshot, locator, tuple(paths))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Discovery listener failed: {e}")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Launch all locators unless a run is already in the task table.

        The merged accumulator is reset to empty: only what the locators
        report from disk right now counts. Must be called with a running
        event loop.
        """
        if self._tasks:
            return

        self._generation += 1
        generation = self._generation
        self._paths = {}
        self._settled_kinds = set()
        self._started_at = self.clock()
        self._state = DiscoveryState.RUNNING
        self._settled_future = asyncio.get_running_loop().create_future()

        logger.debug(f"Starting discovery run {generation}")
        for kind, locator in self.locators.items():
            task = asyncio.ensure_future(locator.run())
            task.add_done_callback(partial(self._on_task_done, kind, generation))
            self._tasks[kind] = task

        if not self._tasks:
            self._schedule_settle(generation)

    def invalidate(self) -> None:
        """
        Forget the current run so the next start() does fresh work.

        In-flight tasks are not cancelled; their results are merged in the
        background once they arrive.
        """
        self._tasks = {}
        self._settled_kinds = set()
        self._state = DiscoveryState.IDLE
        future = self._settled_future
        self._settled_future = None
        if future is not None and not future.done():
            # Wake discover() callers so they restart against the new run
            future.set_result(None)
        logger.debug("Discovery invalidated")

    def is_stale(self) -> bool:
        """True if no run was started, or the last one is older than the staleness window."""
        if self._started_at is None:
            return True
        return self.clock() - self._started_at > self.staleness_seconds

    def refresh_if_stale(self) -> bool:
        """
        Invalidate a populated task table whose run is past the staleness window.

        Returns:
            True if the run was invalidated
        """
        if self._tasks and self.is_stale():
            logger.debug("Discovery run is stale, invalidating")
            self.invalidate()
            return True
        return False

    async def discover(self) -> List[EnvironmentRecord]:
        """
        Run (or join) discovery and wait until every locator has settled.

        Returns:
            Records for every discovered executable, in discovery order
        """
        while True:
            self.start()
            generation = self._generation
            future = self._settled_future
            if future is not None:
                await asyncio.shield(future)
            if generation == self._generation and self._state is DiscoveryState.SETTLED:
                return self.records()

    def _on_task_done(self, kind: LocatorKind, generation: int, task: asyncio.Task) -> None:
        if task.cancelled():
            paths: List[str] = []
        elif task.exception() is not None:
            logger.warning(f"{kind.value} locator failed: {task.exception()}")
            paths = []
        else:
            paths = task.result()

        if generation != self._generation or self._tasks.get(kind) is not task:
            if paths:
                self._spawn(self._merge_stale(paths))
            return

        added = self._merge(paths)
        self._settled_kinds.add(kind)
        self._state = DiscoveryState.SETTLING
        logger.info(f"{kind.value} locator settled: {len(paths)} path(s), {len(added)} new")
        self._publish(EventKind.LOCATOR, kind, paths)

        if self._settled_kinds >= set(self._tasks):
            self._schedule_settle(generation)

    def _merge(self, paths: Iterable[str]) -> List[str]:
        added = [p for p in paths if p not in self._paths]
        for path in added:
            self._paths[path] = None
        return added

    async def _merge_stale(self, paths: List[str]) -> None:
        candidates = [p for p in paths if p not in self._paths and p not in self._tombstones]
        if not candidates:
            return
        exists = await asyncio.gather(*(path_exists(p) for p in candidates))
        # Re-check after the suspension: a deletion may have landed meanwhile
        added = self._merge(
            p for p, ok in zip(candidates, exists) if ok and p not in self._tombstones
        )
        if not added:
            return

        logger.debug(f"Merged {len(added)} path(s) from a superseded run")
        if self._state is DiscoveryState.SETTLED:
            self._last_known = list(self._paths)
            await self._persist()
        self._publish(EventKind.ADDED, paths=added)

    def _schedule_settle(self, generation: int) -> None:
        self._spawn(self._settle(generation))

    async def _settle(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        await self._persist()

        paths = list(self._paths)
        versions = await read_versions(paths, self.context.distribution)
        if not self._is_current(generation):
            return

        self._versions.update(versions)
        self._recommended = pick_recommended(
            {p: self._versions.get(p) for p in self._paths}
        )
        self._last_known = list(self._paths)
        self._state = DiscoveryState.SETTLED
        # This run's locators started after those deletions and only saw disk
        self._tombstones = {p: g for p, g in self._tombstones.items() if g >= generation}
        logger.info(
            f"Discovery settled: {len(self._paths)} environment(s), "
            f"recommended {self._recommended or 'none'}"
        )
        self._publish(EventKind.SETTLED, paths=self._paths)

        future = self._settled_future
        if future is not None and not future.done():
            future.set_result(generation)

    def _is_whole(self) -> bool:
        # The cache seed or a settled union; anything else is a partial accumulator
        return self._state is DiscoveryState.SETTLED or self._generation == 0

    def _is_current(self, generation: int) -> bool:
        # An invalidate() without a new start() leaves the generation unchanged
        return self._state is not DiscoveryState.IDLE and generation == self._generation

    async def _persist(self) -> None:
        # Serialized, and always writes the snapshot as of acquiring the lock,
        # so the last write wins with the latest state
        async with self._persist_lock:
            await asyncio.to_thread(self.cache.save, list(self._paths))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def revalidate_known(self) -> List[str]:
        """
        Drop snapshot paths that no longer exist on disk.

        Any drop invalidates the task table (see _drop()).

        Returns:
            The surviving paths
        """
        paths = list(self._paths)
        exists = await asyncio.gather(*(path_exists(p) for p in paths))
        missing = [p for p, ok in zip(paths, exists) if not ok]
        survivors = [p for p, ok in zip(paths, exists) if ok]
        if missing:
            logger.info(f"Dropping {len(missing)} missing environment(s) from the snapshot")
            write = self._drop(missing)
            if write is not None:
                await write
            self._publish(EventKind.PRUNED, paths=missing)
        return survivors

    def _drop(self, paths: List[str]) -> Optional[asyncio.Task]:
        """
        Prune paths and supersede the current run.

        A settled or cache-seeded snapshot is persisted right away. A run
        still in flight is restarted instead, and its settle writes the cache.

        Returns:
            The spawned cache write, if any
        """
        whole = self._is_whole()
        in_flight = bool(self._tasks) and self._state is not DiscoveryState.SETTLED
        self._prune(paths)
        self.invalidate()
        if in_flight:
            logger.debug("Restarting discovery after a prune mid-run")
            self.start()
            return None
        if whole:
            return self._spawn(self._persist())
        return None

    def _prune(self, paths: Iterable[str]) -> None:
        pruned = set(paths)
        for path in pruned:
            self._paths.pop(path, None)
            self._versions.pop(path, None)
        self._last_known = [p for p in self._last_known if p not in pruned]
        if self._recommended in pruned:
            self._recommended = pick_recommended(
                {p: self._versions.get(p) for p in self._paths}
            )

    async def close(self) -> None:
        """Cancel in-flight locator and background work."""
        pending = list(self._tasks.values()) + list(self._background)
        self.invalidate()
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Watcher integration
    # ------------------------------------------------------------------

    def watcher_callbacks(self) -> WatcherCallbacks:
        """Callbacks wiring an EnvWatcher to this manager."""
        return WatcherCallbacks(
            on_created=self.handle_created,
            on_deleted=self.handle_deleted,
            on_registry_changed=self.handle_registry_changed,
        )

    def handle_created(self, path: str) -> None:
        """A new executable settled on disk: add it to the snapshot."""
        self._tombstones.pop(path, None)
        self._spawn(self._adopt(path))

    async def _adopt(self, path: str) -> None:
        version = await read_version(path, self.context.distribution)
        if path in self._tombstones:
            return
        self._versions[path] = version
        added = self._merge([path])
        if path not in self._last_known:
            self._last_known.append(path)
        if self._is_whole():
            # Mid-run, the settle recommends and writes the cache
            self._recommended = pick_recommended(
                {p: self._versions.get(p) for p in self._paths}
            )
            await self._persist()
        if added:
            self._publish(EventKind.ADDED, paths=added)

    def handle_deleted(self, path: str) -> None:
        """
        An executable was removed: prune it and forget the current run.

        The path is tombstoned so results from superseded runs cannot bring
        it back until a run started after the deletion settles. A matching
        active selection is cleared.
        """
        self._tombstones[path] = self._generation
        self._drop([path])

        if self.get_active() == path:
            logger.info(f"Active environment was deleted: {path}")
            self._clear_active()

        self._publish(EventKind.PRUNED, paths=[path])

    def handle_registry_changed(self) -> None:
        """The conda registry changed: rescan from scratch."""
        self.invalidate()
        self.start()

    # ------------------------------------------------------------------
    # Active selection
    # ------------------------------------------------------------------

    def get_active(self) -> Optional[str]:
        """Active executable path, or None when nothing is selected."""
        value = self.state_store.get(ACTIVE_ENV_KEY)
        return value if isinstance(value, str) and value else None

    def get_jac_path(self) -> str:
        """Active executable, or the bare executable name as a PATH fallback."""
        return self.get_active() or self.context.exe_name

    def get_python_path(self) -> str:
        """Interpreter next to the active executable, or the bare interpreter name."""
        python = "python.exe" if self.context.is_windows else "python"
        active = self.get_active()
        if active:
            return os.path.join(os.path.dirname(active), python)
        return python

    async def get_version(self, path: str) -> Optional[str]:
        """Version of an executable, from the snapshot or from disk."""
        if path in self._versions:
            return self._versions[path]
        version = await read_version(path, self.context.distribution)
        self._versions[path] = version
        return version

    async def select(self, path: str, validate: bool = True) -> None:
        """
        Make `path` the active executable.

        Persists the selection, invalidates and restarts discovery so later
        views reflect the new state, then (re)starts the language server.

        Args:
            path: Executable path
            validate: Check the path with the validator first

        Raises:
            InvalidExecutableError: If validation fails
            StateError: If the selection cannot be persisted
        """
        if validate and not await self.validator(path):
            raise InvalidExecutableError(path)

        self.state_store.update(ACTIVE_ENV_KEY, path)
        await self.get_version(path)
        logger.info(f"Selected environment: {path}")

        self.invalidate()
        self.start()
        await self.restart_server()

    async def restart_server(self) -> None:
        """Start or restart the language server, logging failures."""
        if self.server is None:
            return
        try:
            await self.server.start_or_restart()
        except EnvKitError as e:
            logger.error(f"Failed to restart language server: {e}")

    async def validate_active(self) -> Optional[str]:
        """
        Clear the active selection if it no longer validates.

        Returns:
            The active path if still valid, else None
        """
        active = self.get_active()
        if active is None:
            return None
        if await self.validator(active):
            return active
        logger.info(f"Active environment is no longer valid, clearing: {active}")
        self._clear_active()
        return None

    def _clear_active(self) -> None:
        try:
            self.state_store.update(ACTIVE_ENV_KEY, None)
        except StateError as e:
            logger.warning(f"Could not clear active environment: {e}")

    async def init(self) -> Optional[str]:
        """
        Load the active selection, silently auto-selecting when none is set.

        An invalid selection is cleared first. With nothing selected, a full
        discovery runs and the recommendation becomes active without
        restarting the language server.

        Returns:
            The active path, or None when no environment exists
        """
        active = await self.validate_active()
        if active is not None:
            await self.get_version(active)
            return active

        await self.discover()
        recommended = self._recommended
        if recommended is None:
            logger.info(f"No {self.context.executable} environment found")
            return None

        self.state_store.update(ACTIVE_ENV_KEY, recommended)
        logger.info(f"Auto-selected environment: {recommended}")
        return recommended
