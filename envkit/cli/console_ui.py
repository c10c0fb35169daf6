"""
Terminal implementation of the selection UI.

The console cannot redraw a list while the user reads it, so the picker
reports progress as locators settle and shows the numbered list once
discovery has finished. Blocking input() calls run in a worker thread so
the event loop keeps merging locator results meanwhile.
"""

import asyncio
import logging
import os
import webbrowser
from typing import Callable, List, Optional, Sequence

from envkit.environment.selection import PickerItem, PickerSession, SelectionUI

logger = logging.getLogger(__name__)

InputFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]


async def _ask(input_func: InputFunc, prompt: str) -> Optional[str]:
    try:
        return await asyncio.to_thread(input_func, prompt)
    except EOFError:
        return None


def _choose(answer: Optional[str], options: Sequence) -> Optional[object]:
    """Map a 1-based numeric answer to an option."""
    if not answer or not answer.strip().isdigit():
        return None
    index = int(answer.strip()) - 1
    if 0 <= index < len(options):
        return options[index]
    return None


class ConsolePickerSession(PickerSession):
    """Numbered-list picker on stdin/stdout."""

    def __init__(self, title: str, input_func: InputFunc = input, output: OutputFunc = print):
        self.title = title
        self.input_func = input_func
        self.output = output
        self.items: List[PickerItem] = []
        self.busy = False
        self.placeholder = ""
        self._ready = asyncio.Event()
        self._reported = 0

    def set_items(self, items: Sequence[PickerItem]) -> None:
        self.items = list(items)
        count = sum(1 for item in self.items if item.path)
        if self.busy and count != self._reported:
            self._reported = count
            self.output(f"  {count} environment(s) so far...")

    def set_busy(self, busy: bool) -> None:
        self.busy = busy
        if busy:
            self._ready.clear()
        else:
            self._ready.set()

    def set_placeholder(self, text: str) -> None:
        if text != self.placeholder:
            self.placeholder = text
            self.output(text)

    async def wait_for_choice(self) -> Optional[PickerItem]:
        if self.busy:
            await self._ready.wait()

        self.output("")
        self.output(self.title)
        choices: List[PickerItem] = []
        for item in self.items:
            if item.separator:
                self.output(f"-- {item.label} --")
                continue
            choices.append(item)
            description = f"  {item.description}" if item.description else ""
            self.output(f"  [{len(choices)}] {item.label}{description}")

        answer = await _ask(self.input_func, "Select [number, empty to cancel]: ")
        return _choose(answer, choices)

    def close(self) -> None:
        self._ready.set()


class ConsoleSelectionUI(SelectionUI):
    """SelectionUI on the terminal."""

    def __init__(
        self, input_func: Optional[InputFunc] = None, output: Optional[OutputFunc] = None
    ):
        self.input_func = input_func or input
        self.output = output or print

    def open_picker(self, title: str) -> ConsolePickerSession:
        return ConsolePickerSession(title, self.input_func, self.output)

    async def prompt_manual_path(self) -> Optional[str]:
        return await _ask(self.input_func, "Path to the Jac executable: ")

    async def browse_for_file(self, start_dir: Optional[str]) -> Optional[str]:
        answer = await _ask(
            self.input_func, f"Jac executable (relative to {start_dir or os.getcwd()}): "
        )
        if not answer or not answer.strip():
            return None
        return os.path.join(start_dir or os.getcwd(), answer.strip())

    async def show_error(self, message: str, actions: Sequence[str] = ()) -> Optional[str]:
        return await self._show(f"ERROR: {message}", actions)

    async def show_info(self, message: str, actions: Sequence[str] = ()) -> Optional[str]:
        return await self._show(message, actions)

    async def _show(self, message: str, actions: Sequence[str]) -> Optional[str]:
        self.output(message)
        if not actions:
            return None
        for number, action in enumerate(actions, 1):
            self.output(f"  [{number}] {action}")
        answer = await _ask(self.input_func, "Choose [number, empty to skip]: ")
        return _choose(answer, actions)

    async def open_external(self, url: str) -> None:
        self.output(f"Opening {url}")
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            logger.info(f"Could not open a browser, visit {url}")
