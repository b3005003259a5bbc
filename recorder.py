"""Microphone recorder adapter."""

from __future__ import annotations

import asyncio
import io
import threading
import wave
from typing import Any, Optional

from loguru import logger

from errors import NativeCommandError
from models import AudioDeviceDescriptor

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


def pcm_to_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1, sample_width: int = 2) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._chunks: list[bytes] = []
        self._device_id: Optional[str] = None

    @property
    def is_recording(self) -> bool:
        return self._running

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    def start(self) -> None:
        with self._lock:
            if self._running:
                raise NativeCommandError("Already recording")
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._chunks = []
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self._device_id,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                raise NativeCommandError(f"Failed to open input device: {exc}") from exc
            self._running = True
            logger.debug("Recording started on {}", self._device_id or "default device")

    def stop(self) -> bytes:
        with self._lock:
            if not self._running:
                raise NativeCommandError("Not recording")
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            pcm = b"".join(self._chunks)
            self._chunks = []
        logger.debug("Recording stopped, {} bytes captured", len(pcm))
        return pcm_to_wav(pcm, self.sample_rate, self.channels)

    def set_device(self, device_id: Optional[str]) -> None:
        self._device_id = device_id

    def list_devices(self) -> list[AudioDeviceDescriptor]:
        if sd is None:
            raise RuntimeError("sounddevice is not installed")
        devices = []
        for idx, dev in enumerate(sd.query_devices()):
            if dev.get("max_input_channels", 0) > 0:
                name = dev.get("name", f"Device {idx}")
                devices.append(AudioDeviceDescriptor(id=name, name=name))
        return devices

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running:
            return
        if np is None:
            return
        if status:
            logger.debug("Audio stream status: {}", status)
        self._chunks.append(np.asarray(indata, dtype=np.int16).tobytes())

    # AudioCapture protocol

    async def start_capture(self) -> None:
        await asyncio.to_thread(self.start)

    async def stop_capture(self) -> bytes:
        return await asyncio.to_thread(self.stop)

    async def set_input_device(self, device_id: Optional[str]) -> None:
        self.set_device(device_id)

    async def list_input_devices(self) -> list[AudioDeviceDescriptor]:
        return await asyncio.to_thread(self.list_devices)
