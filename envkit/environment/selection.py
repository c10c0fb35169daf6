"""
Interactive environment selection.

SelectionController drives a picker through a SelectionUI:

1. validate the active selection and drop a stale discovery run
2. open the picker busy, revalidate the known paths and paint them
3. start discovery and stream each locator's results into the picker
4. finalize (busy off, versions, recommendation) once every locator settled
5. apply the user's choice: an environment, manual path entry or the file
   browser, each with its own retry and cross-fallback
6. if the user left without choosing and nothing is active, auto-select
   the recommendation

The UI is an abstract collaborator: the CLI ships a console implementation,
an editor integration would provide its own.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from envkit.core.exceptions import EnvKitError
from envkit.core.filesystem import expand_home
from envkit.discovery.version import compare_versions
from envkit.environment.display import env_name, format_path, item_label
from envkit.environment.manager import (
    DiscoveryEvent,
    DiscoveryState,
    EnvManager,
    EnvironmentRecord,
    EventKind,
)

logger = logging.getLogger(__name__)

# Picker actions
MANUAL = "manual"
BROWSE = "browse"

# Dialog buttons
RETRY = "Retry"
TRY_AGAIN = "Try Again"
BROWSE_BUTTON = "Browse"
ENTER_MANUALLY = "Enter Path Manually"
INSTALL = "Install Jac"
SELECT_MANUALLY = "Select Manually"

SEARCHING = "Searching for Jac environments..."


@dataclass(frozen=True)
class PickerItem:
    """
    One picker row.

    Attributes:
        label: Main text
        description: Secondary text
        path: Executable path for environment rows
        action: MANUAL or BROWSE for action rows
        separator: Section header row (not selectable)
    """

    label: str
    description: str = ""
    path: Optional[str] = None
    action: Optional[str] = None
    separator: bool = False


def separator(label: str) -> PickerItem:
    return PickerItem(label=label, separator=True)


class PickerSession(ABC):
    """An open picker that can be updated while the user looks at it."""

    @abstractmethod
    def set_items(self, items: Sequence[PickerItem]) -> None:
        pass

    @abstractmethod
    def set_busy(self, busy: bool) -> None:
        pass

    @abstractmethod
    def set_placeholder(self, text: str) -> None:
        pass

    @abstractmethod
    async def wait_for_choice(self) -> Optional[PickerItem]:
        """Wait for the user; None when dismissed."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class SelectionUI(ABC):
    """User interaction capability consumed by SelectionController."""

    @abstractmethod
    def open_picker(self, title: str) -> PickerSession:
        pass

    @abstractmethod
    async def prompt_manual_path(self) -> Optional[str]:
        """Ask for an executable path; None or empty when cancelled."""
        pass

    @abstractmethod
    async def browse_for_file(self, start_dir: Optional[str]) -> Optional[str]:
        """Let the user pick a file; None when cancelled."""
        pass

    @abstractmethod
    async def show_error(self, message: str, actions: Sequence[str] = ()) -> Optional[str]:
        """Show an error with optional action buttons; returns the chosen action."""
        pass

    @abstractmethod
    async def show_info(self, message: str, actions: Sequence[str] = ()) -> Optional[str]:
        pass

    @abstractmethod
    async def open_external(self, url: str) -> None:
        pass


def _sort_by_version(records: Sequence[EnvironmentRecord]) -> List[EnvironmentRecord]:
    # Stable: versioned first (highest first), unversioned keep discovery order
    versioned = [r for r in records if r.version]
    unversioned = [r for r in records if not r.version]
    ordered: List[EnvironmentRecord] = []
    for record in versioned:
        index = len(ordered)
        for i, placed in enumerate(ordered):
            if compare_versions(record.version, placed.version) > 0:
                index = i
                break
        ordered.insert(index, record)
    return ordered + unversioned


def build_picker_items(
    records: Sequence[EnvironmentRecord],
    active: Optional[str],
    home: Optional[str] = None,
) -> List[PickerItem]:
    """
    Build picker rows.

    Order: the active environment, the recommendation (only when strictly
    newer than the active one), the other environments by version
    descending, then the manual entry and browse actions.

    Args:
        records: Known environments
        active: Active executable path
        home: Home directory for path shortening

    Returns:
        Picker rows
    """
    ordered = _sort_by_version(records)
    by_path: Dict[str, EnvironmentRecord] = {r.path: r for r in ordered}
    recommended = next((r for r in ordered if r.version), None)

    def row(record: EnvironmentRecord, is_active: bool = False) -> PickerItem:
        return PickerItem(
            label=item_label(record.path, record.version, active=is_active),
            description=format_path(record.path, home),
            path=record.path,
        )

    items: List[PickerItem] = []
    active_record = by_path.get(active) if active else None
    if active_record:
        items.append(separator("Currently Active"))
        items.append(row(active_record, is_active=True))

    shown_recommended: Optional[str] = None
    if recommended and recommended.path != active:
        if active_record and active_record.version:
            newer = compare_versions(recommended.version, active_record.version) > 0
        else:
            newer = True
        if newer:
            items.append(separator("Recommended"))
            items.append(row(recommended))
            shown_recommended = recommended.path

    others = [r for r in ordered if r.path not in (active, shown_recommended)]
    items.extend(row(r) for r in others)

    items.append(separator("Add"))
    items.append(
        PickerItem(
            label="Enter interpreter path...",
            description="Manually specify the path to a Jac executable",
            action=MANUAL,
        )
    )
    items.append(
        PickerItem(
            label="Browse...",
            description="Browse for Jac executable using file picker",
            action=BROWSE,
        )
    )
    return items


class SelectionController:
    """
    Picker, manual entry and file browser flows over an EnvManager.

    Example:
        >>> controller = SelectionController(manager, ConsoleSelectionUI())
        >>> await controller.run()
    """

    def __init__(
        self,
        manager: EnvManager,
        ui: SelectionUI,
        install_url: str = "https://www.jac-lang.org/learn/installation/",
    ):
        """
        Initialize controller.

        Args:
            manager: Environment manager
            ui: User interaction capability
            install_url: Page opened by the install action
        """
        self.manager = manager
        self.ui = ui
        self.install_url = install_url
        self.home = manager.context.home

        self._session: Optional[PickerSession] = None
        self._shown: Dict[str, None] = {}

    # ------------------------------------------------------------------
    # Picker
    # ------------------------------------------------------------------

    async def run(self) -> Optional[str]:
        """
        Run the interactive selection flow.

        Returns:
            The active path afterwards, or None
        """
        try:
            await self._pick()
        except EnvKitError as e:
            logger.error(f"Environment selection failed: {e}")
            await self.ui.show_error(f"Error finding Jac environments: {e}")
        return self.manager.get_active()

    async def _pick(self) -> None:
        manager = self.manager
        await manager.validate_active()
        manager.refresh_if_stale()

        session = self.ui.open_picker(await self._title())
        self._session = session
        session.set_busy(True)
        session.set_placeholder(SEARCHING)

        unsubscribe = manager.subscribe(self._on_event)
        try:
            known = await manager.revalidate_known()
            self._shown = dict.fromkeys(known)
            self._paint()

            manager.start()
            if manager.state is DiscoveryState.SETTLED:
                # Joined a run that already finished
                self._finalize()

            choice = await session.wait_for_choice()
        finally:
            unsubscribe()
            session.close()
            self._session = None

        if choice is not None and choice.action == MANUAL:
            await self.enter_path_manually()
        elif choice is not None and choice.action == BROWSE:
            await self.browse_for_executable()
        elif choice is not None and choice.path:
            await manager.select(choice.path)
        # else: dismissed

        if manager.get_active() is None:
            await self._fallback_select()

    async def _title(self) -> str:
        active = self.manager.get_active()
        if not active:
            return "Select Jac Environment"
        version = await self.manager.get_version(active)
        if version:
            return f"Jac Environment · currently: {version} ({env_name(active)})"
        return "Select Jac Environment"

    def _on_event(self, event: DiscoveryEvent) -> None:
        if event.kind is EventKind.PRUNED:
            for path in event.paths:
                self._shown.pop(path, None)
            self._paint()
        elif event.kind is EventKind.SETTLED:
            self._finalize()
        else:
            for path in event.paths:
                self._shown.setdefault(path, None)
            self._paint()

    def _paint(self) -> None:
        if self._session is None:
            return
        versions = self.manager.snapshot.versions
        records = [EnvironmentRecord(p, versions.get(p)) for p in self._shown]
        self._session.set_items(
            build_picker_items(records, self.manager.get_active(), self.home)
        )

    def _finalize(self) -> None:
        # Settled snapshot is authoritative: nothing stale is carried forward
        snapshot = self.manager.snapshot
        self._shown = dict.fromkeys(snapshot.cached_paths)
        self._paint()
        if self._session is None:
            return
        count = len(snapshot.cached_paths)
        self._session.set_busy(False)
        if count:
            self._session.set_placeholder(
                f"{count} environment{'s' if count > 1 else ''} found"
            )
        else:
            self._session.set_placeholder("No Jac environments detected")

    async def _fallback_select(self) -> None:
        snapshot = self.manager.snapshot
        if snapshot.state is not DiscoveryState.SETTLED:
            await self.manager.discover()
            snapshot = self.manager.snapshot
        if snapshot.recommended:
            logger.info(f"No environment chosen, using recommended {snapshot.recommended}")
            await self.manager.select(snapshot.recommended)

    # ------------------------------------------------------------------
    # Manual entry and file browser
    # ------------------------------------------------------------------

    async def enter_path_manually(self) -> bool:
        """
        Ask for a path, validate it and select it.

        A leading '~' is expanded against the home directory before
        validation. On failure the user may retry or switch to the file
        browser.

        Returns:
            True if an environment was selected
        """
        while True:
            raw = await self.ui.prompt_manual_path()
            if not raw or not raw.strip():
                return False

            path = expand_home(raw.strip(), self.home)
            if await self.manager.validator(path):
                await self._apply(path)
                return True

            action = await self.ui.show_error(
                "Invalid Jac executable.", [RETRY, BROWSE_BUTTON]
            )
            if action == RETRY:
                continue
            if action == BROWSE_BUTTON:
                return await self.browse_for_executable()
            return False

    async def browse_for_executable(self) -> bool:
        """
        Let the user pick the executable file, validate it and select it.

        On failure the user may try again or switch to manual entry.

        Returns:
            True if an environment was selected
        """
        while True:
            path = await self.ui.browse_for_file(self.home or os.sep)
            if not path:
                return False

            if await self.manager.validator(path):
                await self._apply(path)
                return True

            action = await self.ui.show_error(
                "Not a valid Jac executable.", [TRY_AGAIN, ENTER_MANUALLY]
            )
            if action == TRY_AGAIN:
                continue
            if action == ENTER_MANUALLY:
                return await self.enter_path_manually()
            return False

    async def _apply(self, path: str) -> None:
        await self.manager.select(path, validate=False)
        await self.ui.show_info(
            f"Jac environment set to: {format_path(path, self.home)}"
        )

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def prompt_no_environments(self) -> None:
        """
        Tell the user nothing was found and offer the two ways forward.

        Opening the install page changes no state.
        """
        action = await self.ui.show_info(
            "No Jac environment found. Install Jac to enable IntelliSense.",
            [INSTALL, SELECT_MANUALLY],
        )
        if action == INSTALL:
            await self.ui.open_external(self.install_url)
        elif action == SELECT_MANUALLY:
            await self.enter_path_manually()

    async def initialize(self) -> Optional[str]:
        """
        Startup: silent auto-select, prompting only when nothing exists.

        Returns:
            The active path, or None
        """
        active = await self.manager.init()
        if active is None:
            await self.prompt_no_environments()
            active = self.manager.get_active()
        return active
