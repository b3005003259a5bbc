"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

import asyncio
import io
import wave
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from errors import NativeCommandError
from models import AudioDeviceDescriptor
from recorder import SoundDeviceRecorder, pcm_to_wav


def _read_wav(data: bytes) -> tuple[int, int, bytes]:
    with wave.open(io.BytesIO(data), "rb") as wf:
        return wf.getframerate(), wf.getnchannels(), wf.readframes(wf.getnframes())


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_stop_closes_it(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start()

    mock_sd.InputStream.assert_called_once()
    assert mock_sd.InputStream.call_args.kwargs["device"] is None
    mock_stream.start.assert_called_once()
    assert recorder.is_recording is True

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert recorder.is_recording is False


@patch("recorder.sd")
def test_start_twice_raises(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start()
    with pytest.raises(NativeCommandError, match="Already recording"):
        recorder.start()

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


def test_stop_without_start_raises() -> None:
    with pytest.raises(NativeCommandError, match="Not recording"):
        SoundDeviceRecorder().stop()


@patch("recorder.sd")
def test_stream_open_failure_is_wrapped(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = OSError("device busy")

    recorder = SoundDeviceRecorder()
    with pytest.raises(NativeCommandError, match="device busy"):
        recorder.start()
    assert recorder.is_recording is False


@patch("recorder.sd")
def test_selected_device_is_used(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.set_device("USB Mic")
    recorder.start()

    assert mock_sd.InputStream.call_args.kwargs["device"] == "USB Mic"
    recorder.stop()


# ---------------------------------------------------------------
# Audio callback
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_chunks_become_wav(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    recorder.start()

    chunk = np.full((1600, 1), 7, dtype=np.int16)  # 100ms at 16kHz
    recorder._on_audio(chunk, frames=1600, time_info=None, status=None)
    recorder._on_audio(chunk, frames=1600, time_info=None, status=None)

    rate, channels, frames = _read_wav(recorder.stop())
    assert rate == 16000
    assert channels == 1
    assert len(frames) == 2 * 1600 * 2


@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start()
    recorder.stop()

    recorder._on_audio(np.zeros((1600, 1), dtype=np.int16), frames=1600, time_info=None, status=None)
    assert recorder._chunks == []


def test_pcm_to_wav_header() -> None:
    rate, channels, frames = _read_wav(pcm_to_wav(b"\x01\x00" * 10, sample_rate=8000, channels=1))
    assert (rate, channels, frames) == (8000, 1, b"\x01\x00" * 10)


# ---------------------------------------------------------------
# Devices
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_list_devices_keeps_inputs_only(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [
        {"name": "Built-in Microphone", "max_input_channels": 1},
        {"name": "Speakers", "max_input_channels": 0},
        {"name": "USB Mic", "max_input_channels": 2},
    ]

    devices = asyncio.run(SoundDeviceRecorder().list_input_devices())

    assert devices == [
        AudioDeviceDescriptor(id="Built-in Microphone", name="Built-in Microphone"),
        AudioDeviceDescriptor(id="USB Mic", name="USB Mic"),
    ]


def test_set_input_device_clears_with_none() -> None:
    recorder = SoundDeviceRecorder()
    asyncio.run(recorder.set_input_device("USB Mic"))
    assert recorder.device_id == "USB Mic"
    asyncio.run(recorder.set_input_device(None))
    assert recorder.device_id is None


# ---------------------------------------------------------------
# No sounddevice installed
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.start()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.list_devices()
