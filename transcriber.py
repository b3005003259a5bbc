"""Speech-to-text adapter using faster-whisper.

Audio arrives as a 16-bit PCM WAV blob from the recorder. The model runs on
the CPU in a worker thread; language is auto-detected and reported back
with the text.
"""

from __future__ import annotations

import asyncio
import io
import wave
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from errors import ERROR_MESSAGES, PERMISSION_DENIED, NativeCommandError
from models import CommandResult, TranscriptionResult

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    from faster_whisper import WhisperModel
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

MODEL_SIZES = ("tiny", "base", "small", "medium")
MIN_WAV_BYTES = 1000
MIN_PEAK_AMPLITUDE = 0.01


def wav_to_samples(wav_data: bytes) -> Any:
    """Decode a 16-bit PCM WAV blob into mono float32 samples in [-1, 1]."""
    if np is None:
        raise RuntimeError("numpy is not installed")
    try:
        with wave.open(io.BytesIO(wav_data), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            frames = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise NativeCommandError(f"Failed to read WAV: {exc}") from exc
    if sample_width != 2:
        raise NativeCommandError(f"Unsupported sample width: {sample_width * 8} bits")
    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1)
    return samples


class WhisperTranscriber:
    def __init__(self, device: str = "cpu", compute_type: str = "int8") -> None:
        self._device = device
        self._compute_type = compute_type
        self._model: Optional[Any] = None
        self.model_path: Optional[str] = None

    def load(self, path: str) -> None:
        if self._model is not None and path == self.model_path:
            return
        if WhisperModel is None:
            raise RuntimeError("faster-whisper is not installed")
        if path not in MODEL_SIZES and not Path(path).exists():
            raise NativeCommandError(f"Model file not found: {path}")
        try:
            self._model = WhisperModel(path, device=self._device, compute_type=self._compute_type)
        except Exception as exc:
            raise NativeCommandError(f"Failed to load Whisper model: {exc}") from exc
        self.model_path = path
        logger.info("Loaded Whisper model {}", path)

    def run(self, wav_data: bytes) -> TranscriptionResult:
        if self._model is None:
            raise NativeCommandError("Whisper model not loaded")
        if len(wav_data) < MIN_WAV_BYTES:
            raise NativeCommandError(ERROR_MESSAGES[PERMISSION_DENIED])
        samples = wav_to_samples(wav_data)
        peak = float(np.abs(samples).max()) if len(samples) else 0.0
        if peak < MIN_PEAK_AMPLITUDE:
            raise NativeCommandError(
                "Audio too quiet - check that your microphone is working and you have granted permission."
            )
        try:
            segments, info = self._model.transcribe(samples, beam_size=1, vad_filter=True)
            text = " ".join(seg.text.strip() for seg in segments)
        except Exception as exc:
            raise NativeCommandError(f"Transcription failed: {exc}") from exc
        language = getattr(info, "language", None) or "unknown"
        return TranscriptionResult(text=text.strip(), language=language)

    # TranscriptionEngine protocol

    async def is_model_loaded(self) -> bool:
        return self._model is not None

    async def load_model(self, path: str) -> CommandResult[None]:
        try:
            await asyncio.to_thread(self.load, path)
        except (NativeCommandError, RuntimeError) as exc:
            return CommandResult.failure(str(exc))
        return CommandResult.success()

    async def transcribe(self, samples: bytes) -> TranscriptionResult:
        return await asyncio.to_thread(self.run, samples)
