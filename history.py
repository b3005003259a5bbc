"""Bounded transcript history and per-process session statistics."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from interfaces import ConfigStore
from models import HISTORY_LIMIT, SessionStatistics, TranscriptRecord


def word_count(text: str) -> int:
    return len(text.split())


def char_count(text: str) -> int:
    return len(text)


class HistoryStore:
    def __init__(self, config_store: ConfigStore, limit: int = HISTORY_LIMIT) -> None:
        self._config_store = config_store
        self._limit = limit
        self._records: list[TranscriptRecord] = self._load()
        self._rehydrated = False
        self.stats = SessionStatistics()

    @property
    def records(self) -> list[TranscriptRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def push(self, record: TranscriptRecord) -> None:
        self._records.insert(0, record)
        del self._records[self._limit:]
        self._persist()

    def record_completed(self, final_text: str) -> SessionStatistics:
        self.stats.completed_today += 1
        self.stats.cumulative_word_count += word_count(final_text)
        return self.stats

    def take_rehydrated(self) -> Optional[TranscriptRecord]:
        """Return the latest saved record the first time it is asked for, then None."""
        if self._rehydrated or not self._records:
            return None
        self._rehydrated = True
        return self._records[0]

    def _load(self) -> list[TranscriptRecord]:
        return self._config_store.get_history()[: self._limit]

    def _persist(self) -> None:
        if not self._records:
            return
        try:
            self._config_store.set_history(self._records)
        except OSError as exc:
            logger.warning("Failed to save history: {}", exc)
            return
        logger.debug("History saved ({} entries)", len(self._records))
