"""Hotkey capture, display formatting and the pynput global hotkey service."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Optional

from loguru import logger

from interfaces import ConfigStore, HotkeyService
from models import (
    MODIFIER_ORDER,
    RIGHT_MODIFIER_CODES,
    CommandResult,
    HotkeyBinding,
    RawKeyEvent,
)

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

MODIFIER_SYMBOLS = {"Meta": "⌘", "Shift": "⇧", "Alt": "⌥", "Control": "⌃"}
KEY_SYMBOLS = {
    "MetaRight": "⌘R",
    "MetaLeft": "⌘L",
    "ShiftRight": "⇧R",
    "ShiftLeft": "⇧L",
    "AltRight": "⌥R",
    "AltLeft": "⌥L",
    "ControlRight": "⌃R",
    "ControlLeft": "⌃L",
    "Space": "Space",
}

# pynput Key names -> canonical key tokens
_PYNPUT_NAMES = {
    "space": "Space",
    "enter": "Enter",
    "esc": "Escape",
    "tab": "Tab",
    "backspace": "Backspace",
    "cmd": "MetaLeft",
    "cmd_l": "MetaLeft",
    "cmd_r": "MetaRight",
    "shift": "ShiftLeft",
    "shift_l": "ShiftLeft",
    "shift_r": "ShiftRight",
    "alt": "AltLeft",
    "alt_l": "AltLeft",
    "alt_r": "AltRight",
    "alt_gr": "AltRight",
    "ctrl": "ControlLeft",
    "ctrl_l": "ControlLeft",
    "ctrl_r": "ControlRight",
}
_PYNPUT_NAMES.update({f"f{i}": f"F{i}" for i in range(1, 13)})

# binding key names (case-insensitive) -> canonical key tokens
_BINDING_NAMES = {
    "space": "Space",
    "enter": "Enter",
    "return": "Enter",
    "escape": "Escape",
    "esc": "Escape",
    "backspace": "Backspace",
    "tab": "Tab",
}
_BINDING_NAMES.update({f"f{i}": f"F{i}" for i in range(1, 13)})
_BINDING_NAMES.update({code.lower(): code for code in KEY_SYMBOLS if code != "Space"})

_TOKEN_MODIFIER = {f"{mod}{side}": mod for mod in MODIFIER_ORDER for side in ("Left", "Right")}


def format_binding(binding: HotkeyBinding) -> str:
    mods = "".join(MODIFIER_SYMBOLS.get(m, m) for m in binding.modifiers)
    return f"{mods}{KEY_SYMBOLS.get(binding.key, binding.key)}"


def normalize_key(key: str) -> str:
    if key == " ":
        return "Space"
    if len(key) == 1:
        return key.upper()
    return key


def capture_binding(event: RawKeyEvent) -> Optional[HotkeyBinding]:
    """Turn one key-down into a binding, or None while the combination is still incomplete."""
    held = event.held_modifiers()
    if event.code in RIGHT_MODIFIER_CODES:
        own = RIGHT_MODIFIER_CODES[event.code]
        modifiers = tuple(m for m in MODIFIER_ORDER if held[m] and m != own)
        return HotkeyBinding(key=event.code, modifiers=modifiers)

    modifiers = tuple(m for m in MODIFIER_ORDER if held[m])
    key = normalize_key(event.key)
    if modifiers and key not in MODIFIER_ORDER:
        return HotkeyBinding(key=key, modifiers=modifiers)
    return None


def mac_swapped(event: RawKeyEvent) -> RawKeyEvent:
    """Undo Qt's macOS swap so ``meta`` is Command and ``ctrl`` is Control."""
    key = {"Meta": "Control", "Control": "Meta"}.get(event.key, event.key)
    return replace(event, key=key, meta=event.ctrl, ctrl=event.meta)


def resolve_binding_key(key: str) -> Optional[str]:
    if len(key) == 1:
        return key.upper() if key.isprintable() and not key.isspace() else None
    return _BINDING_NAMES.get(key.lower())


def key_token(key: Any) -> Optional[str]:
    """Canonical token for a pynput ``Key``/``KeyCode`` (anything with ``name`` or ``char``)."""
    char = getattr(key, "char", None)
    if char:
        return normalize_key(char)
    name = getattr(key, "name", None)
    if name:
        return _PYNPUT_NAMES.get(name)
    return None


class HotkeyMatcher:
    """Tracks held modifiers and reports press/release edges of one binding."""

    def __init__(self, binding: HotkeyBinding) -> None:
        target = resolve_binding_key(binding.key)
        if target is None:
            raise ValueError(f"Unknown key: {binding.key}")
        self.binding = binding
        self._target = target
        self._required = set(binding.modifiers)
        self._held: set[str] = set()
        self._active = False

    def press(self, token: Optional[str]) -> bool:
        if token is None:
            return False
        if token == self._target:
            if self._active:
                return False
            held = {_TOKEN_MODIFIER[t] for t in self._held}
            if held != self._required:
                return False
            self._active = True
            return True
        if token in _TOKEN_MODIFIER:
            self._held.add(token)
        return False

    def release(self, token: Optional[str]) -> bool:
        if token is None:
            return False
        self._held.discard(token)
        if token == self._target and self._active:
            self._active = False
            return True
        return False


class GlobalHotkeyAdapter:
    def __init__(self) -> None:
        self._listener: Optional[Any] = None
        self._matcher: Optional[HotkeyMatcher] = None
        self._lock = threading.Lock()
        self._on_pressed: Optional[Callable[[], None]] = None
        self._on_released: Optional[Callable[[], None]] = None

    def start(self, on_pressed: Callable[[], None], on_released: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_pressed = on_pressed
        self._on_released = on_released
        self._listener = keyboard.Listener(on_press=self._handle_press, on_release=self._handle_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    async def register(self, binding: HotkeyBinding) -> CommandResult[None]:
        await self.unregister_all()
        try:
            matcher = HotkeyMatcher(binding)
        except ValueError as exc:
            return CommandResult.failure(str(exc))
        with self._lock:
            self._matcher = matcher
        logger.info("Hotkey registered: {}", format_binding(binding))
        return CommandResult.success()

    async def unregister_all(self) -> None:
        with self._lock:
            self._matcher = None

    def _handle_press(self, key: Any) -> None:
        with self._lock:
            fired = self._matcher is not None and self._matcher.press(key_token(key))
        if fired and self._on_pressed:
            self._on_pressed()

    def _handle_release(self, key: Any) -> None:
        with self._lock:
            fired = self._matcher is not None and self._matcher.release(key_token(key))
        if fired and self._on_released:
            self._on_released()


class HotkeyCaptureEngine:
    def __init__(self, service: HotkeyService, config_store: ConfigStore) -> None:
        self._service = service
        self._config_store = config_store
        self._binding = config_store.get_hotkey()
        self._enabled = config_store.get_hotkey_enabled()
        self.capturing = False
        self.last_registration: Optional[CommandResult[None]] = None

    @property
    def current_binding(self) -> HotkeyBinding:
        return self._binding

    @property
    def enabled(self) -> bool:
        return self._enabled

    def format(self, binding: Optional[HotkeyBinding] = None) -> str:
        return format_binding(binding or self._binding)

    def begin_capture(self) -> None:
        self.capturing = True

    def cancel_capture(self) -> None:
        self.capturing = False

    async def on_raw_key_event(self, event: RawKeyEvent) -> Optional[HotkeyBinding]:
        if not self.capturing:
            return None
        binding = capture_binding(event)
        if binding is None:
            return None
        self._binding = binding
        self._config_store.set_hotkey(binding)
        self.capturing = False
        logger.info("Captured hotkey {}", format_binding(binding))
        if self._enabled:
            await self.apply()
        return binding

    async def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        self._config_store.set_hotkey_enabled(enabled)
        await self.apply()

    async def apply(self) -> None:
        """Register the current binding when enabled, otherwise drop every registration."""
        if not self._enabled:
            await self._service.unregister_all()
            return
        await self._service.unregister_all()
        result = await self._service.register(self._binding)
        self.last_registration = result
        if not result.ok:
            logger.warning("Failed to register hotkey: {}", result.error)
