"""Audio input device enumeration and selection."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from interfaces import AudioCapture, ConfigStore
from models import AudioDeviceDescriptor


class DeviceSelector:
    def __init__(self, audio: AudioCapture, config_store: ConfigStore) -> None:
        self._audio = audio
        self._config_store = config_store
        self._devices: list[AudioDeviceDescriptor] = []
        self.selected_device_id: Optional[str] = None

    @property
    def devices(self) -> list[AudioDeviceDescriptor]:
        return list(self._devices)

    async def list_devices(self) -> list[AudioDeviceDescriptor]:
        self._devices = await self._audio.list_input_devices()
        return list(self._devices)

    async def select_device(self, device_id: Optional[str]) -> None:
        self.selected_device_id = device_id
        await self._audio.set_input_device(device_id)
        self._config_store.set_selected_device(device_id)
        logger.info("Input device set to {}", device_id or "system default")

    async def restore(self) -> Optional[str]:
        """Re-select the saved device if it is still present; otherwise keep the default."""
        devices = await self.list_devices()
        saved = self._config_store.get_selected_device()
        if saved and any(d.id == saved for d in devices):
            self.selected_device_id = saved
            await self._audio.set_input_device(saved)
            return saved
        if saved:
            logger.debug("Saved input device {} not found, using system default", saved)
        return None
