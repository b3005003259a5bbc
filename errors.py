"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

MODEL_NOT_LOADED = "MODEL_NOT_LOADED"
EMPTY_TRANSCRIPTION = "EMPTY_TRANSCRIPTION"
CLEANUP_FAILED = "CLEANUP_FAILED"
NATIVE_COMMAND_FAILED = "NATIVE_COMMAND_FAILED"
PERMISSION_DENIED = "PERMISSION_DENIED"

ERROR_MESSAGES = {
    MODEL_NOT_LOADED: "Load model first",
    EMPTY_TRANSCRIPTION: "Could not transcribe audio. Try speaking louder or longer.",
    CLEANUP_FAILED: "Text cleanup failed, raw transcript kept.",
    NATIVE_COMMAND_FAILED: "A system call failed.",
    PERMISSION_DENIED: (
        "No audio captured. Check microphone permissions in "
        "System Settings > Privacy & Security > Microphone."
    ),
}


class YapError(Exception):
    code = NATIVE_COMMAND_FAILED

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])


class ModelNotLoadedError(YapError):
    code = MODEL_NOT_LOADED


class EmptyTranscriptionError(YapError):
    code = EMPTY_TRANSCRIPTION


class CleanupFailure(YapError):
    code = CLEANUP_FAILED


class NativeCommandError(YapError):
    code = NATIVE_COMMAND_FAILED
