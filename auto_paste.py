"""Clipboard delivery, paste simulation and the recent transcripts list."""

from __future__ import annotations

import asyncio
import sys
from typing import Callable, Optional

from loguru import logger

from errors import NativeCommandError
from models import RecentTranscripts

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

MENU_LABEL_LIMIT = 50
EMPTY_MENU_LABEL = "No transcripts yet"

RecentCallback = Callable[[list[str]], None]


def menu_label(text: str) -> str:
    if len(text) > MENU_LABEL_LIMIT:
        return f"{text[:MENU_LABEL_LIMIT - 3]}..."
    return text


def menu_labels(items: list[str]) -> list[str]:
    if not items:
        return [EMPTY_MENU_LABEL]
    return [menu_label(t) for t in items]


class ClipboardPasteService:
    def __init__(
        self,
        on_recent_change: Optional[RecentCallback] = None,
        platform: str = sys.platform,
    ) -> None:
        self._on_recent_change = on_recent_change
        self._platform = platform
        self.recent = RecentTranscripts()

    def set_recent_listener(self, callback: Optional[RecentCallback]) -> None:
        self._on_recent_change = callback

    def copy_text(self, text: str) -> None:
        if pyperclip is None:
            raise RuntimeError("pyperclip is not installed")
        try:
            pyperclip.copy(text)
        except Exception as exc:
            raise NativeCommandError(f"Failed to copy to clipboard: {exc}") from exc

    def paste(self) -> None:
        if Controller is None or Key is None:
            raise RuntimeError("pynput is not installed")
        chord = Key.cmd if self._platform == "darwin" else Key.ctrl
        try:
            keyboard = Controller()
            keyboard.press(chord)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(chord)
        except Exception as exc:
            raise NativeCommandError(f"Failed to simulate paste: {exc}") from exc

    def copy_recent(self, index: int) -> bool:
        """Copy a recent transcript back to the clipboard (tray menu action)."""
        if not 0 <= index < len(self.recent.items):
            return False
        self.copy_text(self.recent.items[index])
        return True

    # ClipboardService protocol

    async def copy_to_clipboard(self, text: str) -> None:
        await asyncio.to_thread(self.copy_text, text)

    async def notify_recent_transcript(self, text: str) -> None:
        self.recent.push(text)
        if self._on_recent_change:
            self._on_recent_change(list(self.recent.items))

    async def simulate_paste(self) -> None:
        await asyncio.to_thread(self.paste)
        logger.debug("Paste simulated")
