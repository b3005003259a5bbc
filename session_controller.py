"""State-machine based session orchestration.

One recording session at a time: ``start()`` opens the microphone, ``stop()``
runs the capture -> transcription -> cleanup -> delivery pipeline. Both are
gated purely on the current phase, which lives in a shared ``SessionContext``
so handlers registered once for the process lifetime always read the live
value.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from errors import (
    EMPTY_TRANSCRIPTION,
    MODEL_NOT_LOADED,
    NATIVE_COMMAND_FAILED,
    CleanupFailure,
    EmptyTranscriptionError,
    ModelNotLoadedError,
    NativeCommandError,
    YapError,
)
from history import HistoryStore
from hotkey import format_binding
from interfaces import AudioCapture, CleanupEngine, ClipboardService, TranscriptionEngine
from models import (
    CommandResult,
    HotkeyBinding,
    SessionContext,
    SessionPhase,
    TranscriptRecord,
)
from overlay_coordinator import OverlayCoordinator

T = TypeVar("T")

StateCallback = Callable[[SessionPhase, SessionPhase], None]
ErrorCallback = Callable[[str, str], None]
ResultCallback = Callable[[TranscriptRecord], None]

MIN_TRANSCRIPT_CHARS = 2
MIN_CLEANUP_CHARS = 4
REFUSAL_MARKERS = (("provide",), ("transcript",))


def now_ms() -> int:
    return int(time.time() * 1000)


def looks_like_refusal(text: str) -> bool:
    """True when a cleanup reply reads like a request for input instead of a cleaned text."""
    lowered = text.lower()
    return all(any(marker in lowered for marker in group) for group in REFUSAL_MARKERS)


def status_text(phase: SessionPhase, model_loaded: bool, binding: HotkeyBinding) -> str:
    if phase == SessionPhase.RECORDING:
        return "Listening..."
    if phase == SessionPhase.TRANSCRIBING:
        return "Transcribing..."
    if phase == SessionPhase.CLEANING:
        return "Processing..."
    if phase == SessionPhase.READY:
        return "Copied to clipboard"
    return format_binding(binding) if model_loaded else "Setup required"


class SessionStateMachine:
    def __init__(
        self,
        audio: AudioCapture,
        transcriber: TranscriptionEngine,
        cleanup: CleanupEngine,
        overlay: OverlayCoordinator,
        history: HistoryStore,
        clipboard: ClipboardService,
        context: Optional[SessionContext] = None,
        mode_reassert_delay_s: float = 0.1,
        settle_delay_s: float = 0.5,
        call_timeout_s: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        self._audio = audio
        self._transcriber = transcriber
        self._cleanup = cleanup
        self._overlay = overlay
        self._history = history
        self._clipboard = clipboard
        self._context = context or SessionContext()
        self._mode_reassert_delay_s = mode_reassert_delay_s
        self._settle_delay_s = settle_delay_s
        self._call_timeout_s = call_timeout_s
        self._clock = clock
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._on_result = on_result

        self._starting = False
        self._timers: set[asyncio.Task] = set()
        self.last_error: Optional[str] = None
        self.last_result: Optional[TranscriptRecord] = None

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def current_phase(self) -> SessionPhase:
        return self._context.phase

    @property
    def model_loaded(self) -> bool:
        return self._context.model_loaded

    @property
    def active_mode_id(self) -> str:
        return self._context.active_mode_id

    @active_mode_id.setter
    def active_mode_id(self, mode_id: str) -> None:
        self._context.active_mode_id = mode_id

    @property
    def pending_timers(self) -> list[asyncio.Task]:
        return [t for t in self._timers if not t.done()]

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    async def load_model(self, path: str) -> CommandResult[None]:
        self.last_error = None
        try:
            result = await self._call(self._transcriber.load_model(path))
        except Exception as exc:
            result = CommandResult.failure(str(exc))
        if result.ok:
            self._context.model_loaded = True
            logger.info("Transcription model loaded from {}", path)
        else:
            self._set_error(NATIVE_COMMAND_FAILED, f"Failed to load model: {result.error}")
        return result

    async def auto_load_model(self, default_path: str) -> bool:
        """Mark an already-loaded model, else try ``default_path`` without surfacing errors."""
        try:
            if await self._transcriber.is_model_loaded():
                self._context.model_loaded = True
                return True
            result = await self._transcriber.load_model(default_path)
        except Exception as exc:
            logger.debug("Model auto-load failed: {}", exc)
            return False
        if result.ok:
            self._context.model_loaded = True
        else:
            logger.debug("No model at {}: {}", default_path, result.error)
        return result.ok

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if not self._context.model_loaded:
            self._set_error(MODEL_NOT_LOADED, str(ModelNotLoadedError()))
            return
        if self._starting or self._context.phase not in (SessionPhase.IDLE, SessionPhase.READY):
            return
        self._starting = True
        capturing = False
        try:
            self.last_error = None
            self.last_result = None
            mode_id = self._context.active_mode_id
            await self._call(self._audio.start_capture())
            capturing = True
            await self._overlay.show_recording(mode_id)
            self._schedule(self._reassert_mode(mode_id))
            self._transition(SessionPhase.RECORDING)
        except Exception as exc:
            if capturing:
                await self._release_capture()
            self._set_error(NATIVE_COMMAND_FAILED, f"Failed to start recording: {exc}")
        finally:
            self._starting = False

    async def stop(self) -> None:
        if self._context.phase != SessionPhase.RECORDING:
            return
        self._transition(SessionPhase.TRANSCRIBING)
        try:
            await self._run_pipeline()
        except Exception as exc:
            code = exc.code if isinstance(exc, YapError) else NATIVE_COMMAND_FAILED
            self._set_error(code, str(exc))
            self._transition(SessionPhase.IDLE)
            await self._overlay.hide_quietly()

    def cancel_pending_timers(self) -> int:
        pending = self.pending_timers
        for task in pending:
            task.cancel()
        return len(pending)

    async def _run_pipeline(self) -> None:
        await self._overlay.processing()
        samples = await self._call(self._audio.stop_capture())
        mode_id = self._context.active_mode_id

        transcription = await self._call(self._transcriber.transcribe(samples))
        raw_text = transcription.text.strip()
        if len(raw_text) < MIN_TRANSCRIPT_CHARS:
            raise EmptyTranscriptionError()

        cleaned_text = raw_text
        if len(raw_text) >= MIN_CLEANUP_CHARS and await self._cleanup.is_cleanup_enabled():
            self._transition(SessionPhase.CLEANING)
            await self._overlay.generating()
            cleaned_text = await self._run_cleanup(raw_text, transcription.language, mode_id)

        record = TranscriptRecord(
            raw_text=raw_text,
            cleaned_text=cleaned_text,
            language=transcription.language,
            mode_id=mode_id,
            timestamp_ms=self._clock(),
        )
        self.last_result = record
        self._history.push(record)
        final_text = record.final_text
        self._history.record_completed(final_text)
        if self._on_result:
            self._on_result(record)

        await self._call(self._clipboard.copy_to_clipboard(final_text))
        await self._call(self._clipboard.notify_recent_transcript(final_text))
        await self._overlay.done()
        self._transition(SessionPhase.READY)
        # Fires even if a new session has started by then.
        self._schedule(self._settle_and_paste())

    async def _run_cleanup(self, raw_text: str, language: str, mode_id: str) -> str:
        try:
            cleaned = await self._call(self._cleanup.cleanup(raw_text, language, mode_id))
        except Exception as exc:
            failure = exc if isinstance(exc, CleanupFailure) else CleanupFailure(str(exc))
            logger.warning("Cleanup failed, keeping raw text: {}", failure)
            return raw_text
        if looks_like_refusal(cleaned):
            logger.warning("Cleanup reply looks like a refusal, keeping raw text: {!r}", cleaned)
            return raw_text
        return cleaned

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _reassert_mode(self, mode_id: str) -> None:
        await asyncio.sleep(self._mode_reassert_delay_s)
        await self._overlay.set_mode(mode_id)

    async def _settle_and_paste(self) -> None:
        await asyncio.sleep(self._settle_delay_s)
        try:
            await self._overlay.hide()
            await self._clipboard.simulate_paste()
        finally:
            if self._context.phase == SessionPhase.READY:
                self._transition(SessionPhase.IDLE)

    def _schedule(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._timers.add(task)
        task.add_done_callback(self._timer_done)
        return task

    def _timer_done(self, task: asyncio.Task) -> None:
        self._timers.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Scheduled overlay/paste step failed: {}", exc)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _release_capture(self) -> None:
        try:
            await self._call(self._audio.stop_capture())
        except Exception as exc:
            logger.warning("Failed to release microphone: {}", exc)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        if self._call_timeout_s is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self._call_timeout_s)
        except asyncio.TimeoutError as exc:
            raise NativeCommandError(f"call timed out after {self._call_timeout_s}s") from exc

    def _set_error(self, code: str, message: str) -> None:
        self.last_error = message
        if code == EMPTY_TRANSCRIPTION:
            logger.info("Empty transcription")
        else:
            logger.error("{}: {}", code, message)
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_phase: SessionPhase) -> None:
        from_phase = self._context.phase
        if from_phase == to_phase:
            return
        self._context.phase = to_phase
        logger.debug("Session {} -> {}", from_phase.value, to_phase.value)
        if self._on_state_change:
            self._on_state_change(from_phase, to_phase)
