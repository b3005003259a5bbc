from __future__ import annotations

import asyncio

from models import OverlayState
from overlay import overlay_text
from overlay_coordinator import OverlayCoordinator


class FakeOverlay:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def show(self, state: OverlayState, mode_id: str) -> None:
        self.calls.append(("show", state, mode_id))

    async def set_state(self, state: OverlayState) -> None:
        self.calls.append(("state", state))

    async def set_mode(self, mode_id: str) -> None:
        self.calls.append(("mode", mode_id))

    async def hide(self) -> None:
        raise RuntimeError("window gone")


def test_overlay_text_shows_mode_while_recording_and_generating() -> None:
    assert overlay_text(OverlayState.RECORDING, "Email") == "🎙️ Listening · Email"
    assert overlay_text(OverlayState.GENERATING, "Email") == "✨ Generating · Email"
    assert overlay_text(OverlayState.PROCESSING, "Email") == "⏳ Transcribing"
    assert overlay_text(OverlayState.DONE, "") == "✅ Copied"


def test_coordinator_pushes_mode_before_showing() -> None:
    overlay = FakeOverlay()
    coordinator = OverlayCoordinator(overlay)

    asyncio.run(coordinator.show_recording("slack"))

    assert overlay.calls == [("mode", "slack"), ("show", OverlayState.RECORDING, "slack")]
    assert coordinator.mode_id == "slack"


def test_hide_quietly_swallows_overlay_failure() -> None:
    asyncio.run(OverlayCoordinator(FakeOverlay()).hide_quietly())
