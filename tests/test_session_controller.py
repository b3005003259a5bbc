from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from config import JsonConfigStore
from errors import EMPTY_TRANSCRIPTION, MODEL_NOT_LOADED, CleanupFailure, NativeCommandError
from history import HistoryStore
from models import (
    CommandResult,
    HotkeyBinding,
    OverlayState,
    SessionContext,
    SessionPhase,
    TranscriptionResult,
)
from overlay_coordinator import OverlayCoordinator
from session_controller import SessionStateMachine, looks_like_refusal, status_text


class FakeAudio:
    def __init__(self, samples: bytes = b"RIFF-fake") -> None:
        self.samples = samples
        self.started = 0
        self.stopped = 0
        self.fail_start = False

    async def start_capture(self) -> None:
        if self.fail_start:
            raise NativeCommandError("no input device")
        self.started += 1

    async def stop_capture(self) -> bytes:
        self.stopped += 1
        return self.samples

    async def set_input_device(self, device_id) -> None:  # noqa: ANN001
        pass

    async def list_input_devices(self) -> list:
        return []


class FakeTranscriber:
    def __init__(self, text: str = "buy milk and eggs", language: str = "en") -> None:
        self.result = TranscriptionResult(text=text, language=language)
        self.error: Exception | None = None
        self.hang = False
        self.calls: list[bytes] = []

    async def is_model_loaded(self) -> bool:
        return True

    async def load_model(self, path: str) -> CommandResult[None]:
        return CommandResult.success()

    async def transcribe(self, samples: bytes) -> TranscriptionResult:
        self.calls.append(samples)
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeCleanup:
    def __init__(self, enabled: bool = False, reply: str = "") -> None:
        self.enabled = enabled
        self.reply = reply
        self.error: Exception | None = None
        self.calls: list[tuple] = []

    async def is_cleanup_available(self) -> bool:
        return True

    async def is_cleanup_enabled(self) -> bool:
        return self.enabled

    async def set_cleanup_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    async def cleanup(self, text: str, language, mode_id: str) -> str:  # noqa: ANN001
        self.calls.append((text, language, mode_id))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeOverlay:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_hide = False
        self.fail_show = False

    async def show(self, state: OverlayState, mode_id: str) -> None:
        self.calls.append(("show", state, mode_id))
        if self.fail_show:
            raise RuntimeError("no screen")

    async def set_state(self, state: OverlayState) -> None:
        self.calls.append(("state", state))

    async def set_mode(self, mode_id: str) -> None:
        self.calls.append(("mode", mode_id))

    async def hide(self) -> None:
        self.calls.append(("hide",))
        if self.fail_hide:
            raise RuntimeError("overlay window gone")


class FakeClipboard:
    def __init__(self) -> None:
        self.copied: list[str] = []
        self.recent: list[str] = []
        self.pastes = 0
        self.fail_paste = False

    async def copy_to_clipboard(self, text: str) -> None:
        self.copied.append(text)

    async def notify_recent_transcript(self, text: str) -> None:
        self.recent.append(text)

    async def simulate_paste(self) -> None:
        if self.fail_paste:
            raise NativeCommandError("accessibility denied")
        self.pastes += 1


class Harness:
    def __init__(self, tmp_path: Path, **kwargs) -> None:  # noqa: ANN003
        self.audio = FakeAudio()
        self.transcriber = FakeTranscriber()
        self.cleanup = FakeCleanup()
        self.overlay = FakeOverlay()
        self.clipboard = FakeClipboard()
        self.history = HistoryStore(JsonConfigStore(path=tmp_path / "config.json"))
        self.transitions: list[tuple[SessionPhase, SessionPhase]] = []
        self.errors: list[tuple[str, str]] = []
        self.session = SessionStateMachine(
            audio=self.audio,
            transcriber=self.transcriber,
            cleanup=self.cleanup,
            overlay=OverlayCoordinator(self.overlay),
            history=self.history,
            clipboard=self.clipboard,
            context=SessionContext(model_loaded=True),
            mode_reassert_delay_s=0.01,
            settle_delay_s=0.02,
            clock=lambda: 1234,
            on_state_change=lambda f, t: self.transitions.append((f, t)),
            on_error=lambda c, m: self.errors.append((c, m)),
            **kwargs,
        )


def test_end_to_end_without_cleanup(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await h.session.start()
        assert h.session.current_phase == SessionPhase.RECORDING
        await h.session.stop()
        assert h.session.current_phase == SessionPhase.READY
        assert h.clipboard.pastes == 0
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    record = h.history.records[0]
    assert record.raw_text == "buy milk and eggs"
    assert record.cleaned_text == "buy milk and eggs"
    assert record.language == "en"
    assert record.mode_id == "default"
    assert record.timestamp_ms == 1234
    assert h.clipboard.copied == ["buy milk and eggs"]
    assert h.clipboard.recent == ["buy milk and eggs"]
    assert h.clipboard.pastes == 1
    assert ("hide",) in h.overlay.calls
    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error is None
    assert h.cleanup.calls == []
    assert (SessionPhase.RECORDING, SessionPhase.TRANSCRIBING) in h.transitions
    assert (SessionPhase.TRANSCRIBING, SessionPhase.READY) in h.transitions


def test_overlay_sequence_and_mode_reassertion(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.session.active_mode_id = "email"

    async def scenario() -> None:
        await h.session.start()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert h.overlay.calls == [
        ("mode", "email"),
        ("show", OverlayState.RECORDING, "email"),
        ("mode", "email"),
    ]


def test_start_without_model_reports_error(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.session.context.model_loaded = False

    asyncio.run(h.session.start())

    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error == "Load model first"
    assert h.errors == [(MODEL_NOT_LOADED, "Load model first")]
    assert h.audio.started == 0
    assert h.overlay.calls == []


def test_start_while_busy_is_noop(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await h.session.start()
        await h.session.start()

    asyncio.run(scenario())

    assert h.audio.started == 1
    assert h.session.current_phase == SessionPhase.RECORDING


def test_start_failure_is_not_raised(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.audio.fail_start = True

    asyncio.run(h.session.start())

    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error == "Failed to start recording: no input device"


def test_overlay_failure_after_capture_releases_microphone(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.overlay.fail_show = True

    asyncio.run(h.session.start())

    assert h.audio.started == 1
    assert h.audio.stopped == 1
    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error == "Failed to start recording: no screen"

    h.overlay.fail_show = False
    asyncio.run(h.session.start())
    assert h.session.current_phase == SessionPhase.RECORDING


def test_history_write_failure_still_delivers_text(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    def disk_full(records: list) -> None:
        raise OSError("disk full")

    h.history._config_store.set_history = disk_full

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.session.current_phase == SessionPhase.READY
    assert h.session.last_error is None
    assert h.clipboard.copied == ["buy milk and eggs"]
    assert h.history.records[0].raw_text == "buy milk and eggs"


def test_paste_failure_still_returns_to_idle(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.clipboard.fail_paste = True

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    assert h.clipboard.pastes == 0
    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.pending_timers == []


def test_stop_when_not_recording_has_no_side_effects(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    asyncio.run(h.session.stop())

    assert h.audio.stopped == 0
    assert h.transcriber.calls == []
    assert h.overlay.calls == []
    assert h.clipboard.copied == []
    assert h.session.current_phase == SessionPhase.IDLE


@pytest.mark.parametrize("text", ["a", "  b  ", ""])
def test_short_transcription_fails_with_empty_error(tmp_path: Path, text: str) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text=text, language="en")

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error == "Could not transcribe audio. Try speaking louder or longer."
    assert h.errors[0][0] == EMPTY_TRANSCRIPTION
    assert h.overlay.calls[-1] == ("hide",)
    assert len(h.history) == 0
    assert h.history.stats.completed_today == 0
    assert h.clipboard.copied == []


def test_cleanup_result_is_used(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text="hello world", language="en")
    h.cleanup.enabled = True
    h.cleanup.reply = "Hello, world!"
    h.session.active_mode_id = "slack"

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    record = h.history.records[0]
    assert record.raw_text == "hello world"
    assert record.cleaned_text == "Hello, world!"
    assert h.cleanup.calls == [("hello world", "en", "slack")]
    assert h.clipboard.copied == ["Hello, world!"]
    assert ("state", OverlayState.GENERATING) in h.overlay.calls
    assert (SessionPhase.TRANSCRIBING, SessionPhase.CLEANING) in h.transitions
    assert (SessionPhase.CLEANING, SessionPhase.READY) in h.transitions


def test_refusal_shaped_cleanup_reply_keeps_raw_text(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text="hello world", language="en")
    h.cleanup.enabled = True
    h.cleanup.reply = "Please provide the transcript to clean up."

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.history.records[0].cleaned_text == "hello world"
    assert h.session.last_error is None


def test_cleanup_failure_is_silent(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text="hello world", language="en")
    h.cleanup.enabled = True
    h.cleanup.error = CleanupFailure("Ollama is not running")

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.session.current_phase == SessionPhase.READY
    assert h.session.last_error is None
    assert h.errors == []
    assert h.history.records[0].cleaned_text == "hello world"
    assert h.clipboard.copied == ["hello world"]


def test_cleanup_skipped_for_short_text(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text="yes", language="en")
    h.cleanup.enabled = True
    h.cleanup.reply = "Yes."

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.cleanup.calls == []
    assert h.history.records[0].cleaned_text == "yes"


def test_native_failure_goes_idle_and_hides_overlay(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.error = NativeCommandError("Transcription failed: bad model")
    h.overlay.fail_hide = True

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.session.current_phase == SessionPhase.IDLE
    assert h.session.last_error == "Transcription failed: bad model"
    assert h.overlay.calls[-1] == ("hide",)
    assert len(h.history) == 0


def test_statistics_count_words_of_final_text(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.transcriber.result = TranscriptionResult(text="hello world again", language="en")
    h.cleanup.enabled = True
    h.cleanup.reply = "Hello world, once again!"

    async def scenario() -> None:
        for _ in range(2):
            await h.session.start()
            await h.session.stop()

    asyncio.run(scenario())

    assert h.history.stats.completed_today == 2
    assert h.history.stats.cumulative_word_count == 8
    assert len(h.history) == 2


def test_ready_allows_new_session(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()
        assert h.session.current_phase == SessionPhase.READY
        await h.session.start()
        assert h.session.current_phase == SessionPhase.RECORDING
        assert h.session.last_result is None
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    # the settle timer of the first session still fires during the second one
    assert h.clipboard.pastes == 1
    assert h.session.current_phase == SessionPhase.RECORDING


def test_cancel_pending_timers_skips_paste(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> int:
        await h.session.start()
        await h.session.stop()
        cancelled = h.session.cancel_pending_timers()
        await asyncio.sleep(0.1)
        return cancelled

    assert asyncio.run(scenario()) >= 1
    assert h.clipboard.pastes == 0
    assert h.session.current_phase == SessionPhase.READY


def test_call_timeout_turns_hang_into_error(tmp_path: Path) -> None:
    h = Harness(tmp_path, call_timeout_s=0.05)
    h.transcriber.hang = True

    async def scenario() -> None:
        await h.session.start()
        await h.session.stop()

    asyncio.run(scenario())

    assert h.session.current_phase == SessionPhase.IDLE
    assert "timed out" in (h.session.last_error or "")


def test_load_model_failure_sets_error(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.session.context.model_loaded = False

    async def failing_load(path: str) -> CommandResult[None]:
        return CommandResult.failure("Model file not found: /nope")

    h.transcriber.load_model = failing_load  # type: ignore[method-assign]

    result = asyncio.run(h.session.load_model("/nope"))

    assert result.ok is False
    assert h.session.model_loaded is False
    assert h.session.last_error == "Failed to load model: Model file not found: /nope"


def test_auto_load_marks_loaded_model(tmp_path: Path) -> None:
    h = Harness(tmp_path)
    h.session.context.model_loaded = False

    assert asyncio.run(h.session.auto_load_model("/models/base")) is True
    assert h.session.model_loaded is True


def test_looks_like_refusal() -> None:
    assert looks_like_refusal("Please provide the transcript to clean up.")
    assert looks_like_refusal("Could you PROVIDE the Transcript?")
    assert not looks_like_refusal("Hello, world!")
    assert not looks_like_refusal("I will provide the slides tomorrow.")
    assert not looks_like_refusal("The transcript is attached.")


def test_status_text() -> None:
    binding = HotkeyBinding(key="Space", modifiers=("Meta", "Shift"))
    assert status_text(SessionPhase.RECORDING, True, binding) == "Listening..."
    assert status_text(SessionPhase.READY, True, binding) == "Copied to clipboard"
    assert status_text(SessionPhase.IDLE, False, binding) == "Setup required"
    assert status_text(SessionPhase.IDLE, True, binding) == "⌘⇧Space"
