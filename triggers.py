"""Routes gesture and hotkey triggers to the session state machine."""

from __future__ import annotations

import asyncio
from concurrent.futures import Future
from typing import Awaitable, Callable, Optional

from loguru import logger

from models import SessionPhase
from session_controller import SessionStateMachine


class TriggerRouter:
    def __init__(self, session: SessionStateMachine) -> None:
        self._session = session
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def gesture_down(self) -> None:
        await self._session.start()

    async def gesture_up(self) -> None:
        await self._session.stop()

    async def hotkey_pressed(self) -> None:
        ctx = self._session.context
        if not ctx.model_loaded:
            return
        if ctx.phase not in (SessionPhase.IDLE, SessionPhase.READY):
            return
        await self._session.start()

    async def hotkey_released(self) -> None:
        if self._session.context.phase == SessionPhase.RECORDING:
            await self._session.stop()

    # Thread-safe entry points for listener threads (pynput, Qt).

    def post_hotkey_pressed(self) -> Optional[Future]:
        return self._post(self.hotkey_pressed)

    def post_hotkey_released(self) -> Optional[Future]:
        return self._post(self.hotkey_released)

    def post_gesture_down(self) -> Optional[Future]:
        return self._post(self.gesture_down)

    def post_gesture_up(self) -> Optional[Future]:
        return self._post(self.gesture_up)

    def _post(self, handler: Callable[[], Awaitable[None]]) -> Optional[Future]:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("Trigger dropped, no event loop bound")
            return None
        return asyncio.run_coroutine_threadsafe(handler(), loop)
