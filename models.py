"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

MODIFIER_ORDER = ("Meta", "Shift", "Alt", "Control")
RIGHT_MODIFIER_CODES = {
    "MetaRight": "Meta",
    "ShiftRight": "Shift",
    "AltRight": "Alt",
    "ControlRight": "Control",
}
DEFAULT_MODE_ID = "default"
HISTORY_LIMIT = 10


class SessionPhase(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    CLEANING = "cleaning"
    READY = "ready"


class OverlayState(str, Enum):
    RECORDING = "recording"
    PROCESSING = "processing"
    GENERATING = "generating"
    DONE = "done"


@dataclass(frozen=True)
class HotkeyBinding:
    key: str
    modifiers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.key in self.modifiers:
            raise ValueError(f"modifier set must not contain the primary key {self.key!r}")
        ordered = tuple(m for m in MODIFIER_ORDER if m in self.modifiers)
        extra = tuple(m for m in self.modifiers if m not in MODIFIER_ORDER)
        object.__setattr__(self, "modifiers", ordered + extra)

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "modifiers": list(self.modifiers)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HotkeyBinding":
        return cls(key=str(data["key"]), modifiers=tuple(str(m) for m in data.get("modifiers", [])))


DEFAULT_HOTKEY = HotkeyBinding(key="Space", modifiers=("Meta", "Shift"))


@dataclass(frozen=True)
class RawKeyEvent:
    """A key-down event as delivered by the capture surface.

    ``code`` names the physical key (``ShiftRight``, ``KeyA``, ``Space``),
    ``key`` the logical value (``"a"``, ``" "``, ``"Shift"``).
    """

    code: str
    key: str
    meta: bool = False
    shift: bool = False
    alt: bool = False
    ctrl: bool = False

    def held_modifiers(self) -> dict[str, bool]:
        return {"Meta": self.meta, "Shift": self.shift, "Alt": self.alt, "Control": self.ctrl}


@dataclass(frozen=True)
class ModeDescriptor:
    id: str
    display_name: str
    description: str
    requires_cleanup_capability: bool = True


@dataclass(frozen=True)
class AudioDeviceDescriptor:
    id: Optional[str]
    name: str


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    language: str = "unknown"


@dataclass(frozen=True)
class TranscriptRecord:
    raw_text: str
    cleaned_text: str
    language: str
    mode_id: str = DEFAULT_MODE_ID
    timestamp_ms: int = 0

    @property
    def final_text(self) -> str:
        return self.cleaned_text or self.raw_text

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_text": self.raw_text,
            "cleaned_text": self.cleaned_text,
            "language": self.language,
            "mode": self.mode_id,
            "timestamp": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptRecord":
        return cls(
            raw_text=str(data.get("raw_text", "")),
            cleaned_text=str(data.get("cleaned_text", "")),
            language=str(data.get("language", "unknown")),
            mode_id=str(data.get("mode") or DEFAULT_MODE_ID),
            timestamp_ms=int(data.get("timestamp") or 0),
        )


@dataclass
class SessionStatistics:
    completed_today: int = 0
    cumulative_word_count: int = 0
    streak_days: int = 1


@dataclass
class SessionContext:
    """Live values read by long-lived trigger handlers at dispatch time."""

    phase: SessionPhase = SessionPhase.IDLE
    model_loaded: bool = False
    active_mode_id: str = DEFAULT_MODE_ID


@dataclass(frozen=True)
class CommandResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None) -> "CommandResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "CommandResult[T]":
        return cls(ok=False, error=error)


@dataclass
class RecentTranscripts:
    limit: int = 3
    items: list[str] = field(default_factory=list)

    def push(self, text: str) -> None:
        self.items.insert(0, text)
        del self.items[self.limit:]
