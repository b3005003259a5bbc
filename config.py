"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from models import DEFAULT_HOTKEY, DEFAULT_MODE_ID, HotkeyBinding, TranscriptRecord

DEFAULT_CLEANUP_MODEL = "gemma2:2b"


def default_config_path() -> Path:
    override = os.environ.get("YAP_CONFIG_PATH")
    if override:
        return Path(override)
    return Path.home() / ".config" / "yap" / "config.json"


def models_dir() -> Path:
    return Path.home() / ".local" / "share" / "yap" / "models"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_config_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def get_hotkey(self) -> HotkeyBinding:
        raw = self.get("hotkey")
        if not isinstance(raw, dict):
            return DEFAULT_HOTKEY
        try:
            return HotkeyBinding.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed saved hotkey: {}", raw)
            return DEFAULT_HOTKEY

    def set_hotkey(self, binding: HotkeyBinding) -> None:
        self.set("hotkey", binding.to_dict())

    def get_hotkey_enabled(self) -> bool:
        return bool(self.get("hotkey_enabled", True))

    def set_hotkey_enabled(self, enabled: bool) -> None:
        self.set("hotkey_enabled", enabled)

    def get_selected_device(self) -> Optional[str]:
        value = self.get("selected_device")
        return str(value) if value else None

    def set_selected_device(self, device_id: Optional[str]) -> None:
        if device_id:
            self.set("selected_device", device_id)
        else:
            self.remove("selected_device")

    def get_selected_mode(self) -> str:
        return str(self.get("selected_mode") or DEFAULT_MODE_ID)

    def set_selected_mode(self, mode_id: str) -> None:
        self.set("selected_mode", mode_id)

    def get_history(self) -> list[TranscriptRecord]:
        raw = self.get("history", [])
        if not isinstance(raw, list):
            return []
        records = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                records.append(TranscriptRecord.from_dict(item))
            except (TypeError, ValueError):
                logger.warning("Skipping malformed history entry: {}", item)
        return records

    def set_history(self, records: list[TranscriptRecord]) -> None:
        self.set("history", [r.to_dict() for r in records])

    def get_cleanup_enabled(self) -> bool:
        return bool(self.get("cleanup_enabled", True))

    def set_cleanup_enabled(self, enabled: bool) -> None:
        self.set("cleanup_enabled", enabled)

    def get_cleanup_model(self) -> str:
        return str(self.get("cleanup_model") or DEFAULT_CLEANUP_MODEL)

    def set_cleanup_model(self, model: str) -> None:
        self.set("cleanup_model", model)

    def get_model_path(self) -> str:
        return str(self.get("model_path") or models_dir() / "base")

    def set_model_path(self, path: str) -> None:
        self.set("model_path", path)

    def get_log_level(self) -> str:
        return str(os.environ.get("YAP_LOG_LEVEL") or self.get("log_level") or "INFO").upper()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
