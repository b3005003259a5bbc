"""Protocol interfaces for the collaborators used by the session orchestrator."""

from __future__ import annotations

from typing import Optional, Protocol

from models import (
    AudioDeviceDescriptor,
    CommandResult,
    HotkeyBinding,
    ModeDescriptor,
    OverlayState,
    TranscriptRecord,
    TranscriptionResult,
)


class AudioCapture(Protocol):
    async def start_capture(self) -> None: ...

    async def stop_capture(self) -> bytes: ...

    async def set_input_device(self, device_id: Optional[str]) -> None: ...

    async def list_input_devices(self) -> list[AudioDeviceDescriptor]: ...


class TranscriptionEngine(Protocol):
    async def is_model_loaded(self) -> bool: ...

    async def load_model(self, path: str) -> CommandResult[None]: ...

    async def transcribe(self, samples: bytes) -> TranscriptionResult: ...


class CleanupEngine(Protocol):
    async def is_cleanup_available(self) -> bool: ...

    async def is_cleanup_enabled(self) -> bool: ...

    async def set_cleanup_enabled(self, enabled: bool) -> None: ...

    async def cleanup(self, text: str, language: Optional[str], mode_id: str) -> str: ...


class ModeCatalog(Protocol):
    def list_modes(self) -> list[ModeDescriptor]: ...


class HotkeyService(Protocol):
    async def register(self, binding: HotkeyBinding) -> CommandResult[None]: ...

    async def unregister_all(self) -> None: ...


class Overlay(Protocol):
    async def show(self, state: OverlayState, mode_id: str) -> None: ...

    async def set_state(self, state: OverlayState) -> None: ...

    async def set_mode(self, mode_id: str) -> None: ...

    async def hide(self) -> None: ...


class ClipboardService(Protocol):
    async def copy_to_clipboard(self, text: str) -> None: ...

    async def notify_recent_transcript(self, text: str) -> None: ...

    async def simulate_paste(self) -> None: ...


class ConfigStore(Protocol):
    def get_hotkey(self) -> HotkeyBinding: ...

    def set_hotkey(self, binding: HotkeyBinding) -> None: ...

    def get_hotkey_enabled(self) -> bool: ...

    def set_hotkey_enabled(self, enabled: bool) -> None: ...

    def get_selected_device(self) -> Optional[str]: ...

    def set_selected_device(self, device_id: Optional[str]) -> None: ...

    def get_selected_mode(self) -> str: ...

    def set_selected_mode(self, mode_id: str) -> None: ...

    def get_history(self) -> list[TranscriptRecord]: ...

    def set_history(self, records: list[TranscriptRecord]) -> None: ...

    def get_cleanup_enabled(self) -> bool: ...

    def set_cleanup_enabled(self, enabled: bool) -> None: ...

    def get_cleanup_model(self) -> str: ...

    def set_cleanup_model(self, model: str) -> None: ...