"""Maps session phases to overlay visual states."""

from __future__ import annotations

from loguru import logger

from interfaces import Overlay
from models import DEFAULT_MODE_ID, OverlayState


class OverlayCoordinator:
    def __init__(self, overlay: Overlay) -> None:
        self._overlay = overlay
        self.mode_id = DEFAULT_MODE_ID

    async def show_recording(self, mode_id: str) -> None:
        self.mode_id = mode_id
        await self._overlay.set_mode(mode_id)
        await self._overlay.show(OverlayState.RECORDING, mode_id)

    async def set_mode(self, mode_id: str) -> None:
        self.mode_id = mode_id
        await self._overlay.set_mode(mode_id)

    async def processing(self) -> None:
        await self._overlay.set_state(OverlayState.PROCESSING)

    async def generating(self) -> None:
        await self._overlay.set_state(OverlayState.GENERATING)

    async def done(self) -> None:
        await self._overlay.set_state(OverlayState.DONE)

    async def hide(self) -> None:
        await self._overlay.hide()

    async def hide_quietly(self) -> None:
        """Hide during error recovery; a failure here is logged and dropped."""
        try:
            await self._overlay.hide()
        except Exception as exc:
            logger.warning("Overlay hide failed during recovery: {}", exc)
