"""Application entrypoint."""

from __future__ import annotations

import asyncio
import sys
import threading
from concurrent.futures import Future
from typing import Any, Coroutine, Optional

from loguru import logger

from auto_paste import ClipboardPasteService, menu_labels
from autostart import LoginItem
from cleanup import OllamaCleanupEngine
from config import JsonConfigStore
from devices import DeviceSelector
from history import HistoryStore, char_count, word_count
from hotkey import GlobalHotkeyAdapter, HotkeyCaptureEngine, mac_swapped
from models import RIGHT_MODIFIER_CODES, CommandResult, RawKeyEvent, SessionPhase, TranscriptRecord
from modes import BuiltinModeCatalog, ModeRegistry
from overlay import OverlayBridge, OverlayWindow
from overlay_coordinator import OverlayCoordinator
from recorder import SoundDeviceRecorder
from session_controller import SessionStateMachine, status_text
from transcriber import WhisperTranscriber
from triggers import TriggerRouter

try:
    from PySide6.QtCore import QObject, QSize, Qt, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QDialog, QInputDialog, QLabel, QMenu, QSystemTrayIcon, QVBoxLayout
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_BUSY = "#4FC3F7"      # blue
ICON_ERROR = "#FF8800"     # orange

# native key codes of right-side modifiers (X11 keycodes, macOS virtual keys)
_RIGHT_MODIFIER_NATIVE = {
    "linux": {62: "ShiftRight", 105: "ControlRight", 108: "AltRight", 134: "MetaRight"},
    "darwin": {0x3C: "ShiftRight", 0x3E: "ControlRight", 0x3D: "AltRight", 0x36: "MetaRight"},
}


def setup_logging(level: str, log_dir: Any) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level,
    )
    logger.add(log_dir / "yap.log", rotation="1 MB", retention=3, level="DEBUG")
    logger.info("yap starting...")


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


def raw_key_event_from_qt(event: Any, platform: str = sys.platform) -> RawKeyEvent:
    mods = event.modifiers()
    native = _RIGHT_MODIFIER_NATIVE.get(platform, {})
    native_code = event.nativeVirtualKey() if platform == "darwin" else event.nativeScanCode()
    code = native.get(native_code, "")
    text = event.text()
    key_names = {
        Qt.Key_Meta: "Meta",
        Qt.Key_Shift: "Shift",
        Qt.Key_Alt: "Alt",
        Qt.Key_Control: "Control",
        Qt.Key_Space: " ",
        Qt.Key_Return: "Enter",
        Qt.Key_Enter: "Enter",
        Qt.Key_Escape: "Escape",
        Qt.Key_Tab: "Tab",
        Qt.Key_Backspace: "Backspace",
    }
    key_names.update({getattr(Qt, f"Key_F{i}"): f"F{i}" for i in range(1, 13)})
    key = key_names.get(event.key()) or (text if len(text) == 1 and text.isprintable() else "")
    raw = RawKeyEvent(
        code=code,
        key=key,
        meta=bool(mods & Qt.MetaModifier),
        shift=bool(mods & Qt.ShiftModifier),
        alt=bool(mods & Qt.AltModifier),
        ctrl=bool(mods & Qt.ControlModifier),
    )
    # Qt reports Command as Control on macOS
    return mac_swapped(raw) if platform == "darwin" else raw


class AsyncLoopThread:
    """Runs the session event loop on a daemon thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="session-loop", daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> None:
        self._thread.start()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=1.0)


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_phase, to_phase
    error_signal = Signal(str)
    result_signal = Signal(str)
    recent_signal = Signal(list)


class HotkeyCaptureDialog(QDialog):
    def __init__(self, engine: HotkeyCaptureEngine, runner: AsyncLoopThread) -> None:
        super().__init__()
        self._engine = engine
        self._runner = runner
        self.setWindowTitle("Set Hotkey")
        layout = QVBoxLayout()
        layout.addWidget(QLabel("Press the new shortcut (modifier + key, or a right-side modifier)."))
        self.setLayout(layout)

    def keyPressEvent(self, event: Any) -> None:  # noqa: N802
        raw = raw_key_event_from_qt(event)
        if raw.code not in RIGHT_MODIFIER_CODES and not raw.key:
            return
        future = self._runner.submit(self._engine.on_raw_key_event(raw))
        if future.result(timeout=2.0) is not None:
            self.accept()

    def reject(self) -> None:
        self._engine.cancel_capture()
        super().reject()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        setup_logging(self.config_store.get_log_level(), self.config_store.path.parent)

        self.runner = AsyncLoopThread()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.result_signal.connect(self._on_result_ui)
        self.ui.recent_signal.connect(self._on_recent_ui)

        catalog = BuiltinModeCatalog()
        modes = catalog.list_modes()
        self.overlay_window = OverlayWindow({m.id: m.display_name for m in modes})
        self.overlay = OverlayCoordinator(OverlayBridge(self.overlay_window))

        self.recorder = SoundDeviceRecorder()
        self.transcriber = WhisperTranscriber()
        self.cleanup = OllamaCleanupEngine(self.config_store)
        self.clipboard = ClipboardPasteService(on_recent_change=self.ui.recent_signal.emit)
        self.history = HistoryStore(self.config_store)
        self.modes = ModeRegistry(modes, self.config_store)
        self.devices = DeviceSelector(self.recorder, self.config_store)

        self.session = SessionStateMachine(
            audio=self.recorder,
            transcriber=self.transcriber,
            cleanup=self.cleanup,
            overlay=self.overlay,
            history=self.history,
            clipboard=self.clipboard,
            on_state_change=lambda f, t: self.ui.state_signal.emit(f.value, t.value),
            on_error=lambda code, msg: self.ui.error_signal.emit(msg),
            on_result=lambda record: self.ui.result_signal.emit(record.final_text),
        )
        self.modes.attach(self.session, self.overlay)
        self.triggers = TriggerRouter(self.session)
        self.triggers.bind_loop(self.runner.loop)

        self.hotkey_service = GlobalHotkeyAdapter()
        self.hotkey = HotkeyCaptureEngine(self.hotkey_service, self.config_store)
        self.login_item = LoginItem()

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self._recent_menu = QMenu("Recent")
        self._setup_menu()
        self.tray.activated.connect(self._on_tray_activated)
        self._refresh_status()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()
        self._status_action = QAction("", menu)
        self._status_action.setEnabled(False)
        menu.addAction(self._status_action)
        menu.addMenu(self._recent_menu)
        self._on_recent_ui([])
        menu.addSeparator()

        self._mode_menu = menu.addMenu("Output Mode")
        self._mode_group = QActionGroup(self._mode_menu)
        for mode in self.modes.modes:
            action = QAction(mode.display_name, self._mode_menu, checkable=True)
            action.setToolTip(mode.description)
            action.setData(mode.id)
            action.triggered.connect(lambda _=False, mode_id=mode.id: self._select_mode(mode_id))
            self._mode_group.addAction(action)
            self._mode_menu.addAction(action)

        self._device_menu = menu.addMenu("Microphone")
        self._device_menu.aboutToShow.connect(self._populate_devices)

        cleanup_action = QAction("AI Cleanup", menu, checkable=True)
        cleanup_action.setChecked(self.config_store.get_cleanup_enabled())
        cleanup_action.toggled.connect(lambda on: self.runner.submit(self.cleanup.set_cleanup_enabled(on)))
        menu.addAction(cleanup_action)

        self._cleanup_model_menu = menu.addMenu("Cleanup Model")
        self._cleanup_model_group = QActionGroup(self._cleanup_model_menu)
        for model, description in self.cleanup.recommended_models():
            action = QAction(model, self._cleanup_model_menu, checkable=True)
            action.setToolTip(description)
            action.setChecked(model == self.cleanup.model)
            action.triggered.connect(lambda _=False, name=model: self._select_cleanup_model(name))
            self._cleanup_model_group.addAction(action)
            self._cleanup_model_menu.addAction(action)

        hotkey_toggle = QAction("Global Hotkey", menu, checkable=True)
        hotkey_toggle.setChecked(self.hotkey.enabled)
        hotkey_toggle.toggled.connect(lambda on: self.runner.submit(self.hotkey.set_enabled(on)))
        menu.addAction(hotkey_toggle)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._capture_hotkey)
        menu.addAction(hotkey_action)

        model_action = QAction("Load Model", menu)
        model_action.triggered.connect(self._load_model)
        menu.addAction(model_action)

        login_action = QAction("Start at Login", menu, checkable=True)
        login_action.setChecked(self.login_item.is_enabled())
        login_action.toggled.connect(self._toggle_login_item)
        menu.addAction(login_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Menu actions (UI thread)
    # ------------------------------------------------------------------

    def _select_mode(self, mode_id: str) -> None:
        future = self.runner.submit(self.modes.select_mode(mode_id))
        future.add_done_callback(lambda _: self.ui.state_signal.emit("", self.session.current_phase.value))

    def _select_cleanup_model(self, model: str) -> None:
        future = self.runner.submit(self._change_cleanup_model(model))
        future.add_done_callback(lambda _: self.ui.state_signal.emit("", self.session.current_phase.value))

    def _toggle_login_item(self, enabled: bool) -> None:
        result = self.login_item.set_enabled(enabled)
        if not result.ok:
            self.tray.showMessage("yap", f"Failed to update start at login: {result.error}", QSystemTrayIcon.Warning, 3000)

    def _populate_devices(self) -> None:
        self._device_menu.clear()
        default = QAction("System Default", self._device_menu, checkable=True)
        default.setChecked(self.devices.selected_device_id is None)
        default.triggered.connect(lambda: self.runner.submit(self.devices.select_device(None)))
        self._device_menu.addAction(default)
        for device in self.runner.submit(self.devices.list_devices()).result(timeout=2.0):
            action = QAction(device.name, self._device_menu, checkable=True)
            action.setChecked(device.id == self.devices.selected_device_id)
            action.triggered.connect(
                lambda _=False, device_id=device.id: self.runner.submit(self.devices.select_device(device_id))
            )
            self._device_menu.addAction(action)

    def _on_tray_activated(self, reason: Any) -> None:
        if reason != QSystemTrayIcon.Trigger:
            return
        if self.session.current_phase == SessionPhase.RECORDING:
            self.triggers.post_gesture_up()
        else:
            self.triggers.post_gesture_down()

    def _capture_hotkey(self) -> None:
        self.hotkey.begin_capture()
        HotkeyCaptureDialog(self.hotkey, self.runner).exec()
        self._refresh_status()

    def _load_model(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Whisper Model", "Model path or size", text=self.config_store.get_model_path()
        )
        if not ok or not value:
            return
        future = self.runner.submit(self._remember_and_load_model(value))
        future.add_done_callback(lambda _: self.ui.state_signal.emit("", self.session.current_phase.value))

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _refresh_status(self) -> None:
        text = status_text(self.session.current_phase, self.session.model_loaded, self.hotkey.current_binding)
        self._status_action.setText(text)
        self.tray.setToolTip(f"yap: {text}")
        for action in self._mode_group.actions():
            action.setChecked(action.data() == self.session.active_mode_id)
            action.setEnabled(self.modes.is_selectable(action.data()))

    def _on_state_change_ui(self, from_phase: str, to_phase: str) -> None:
        if to_phase == SessionPhase.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
        elif to_phase in (SessionPhase.TRANSCRIBING.value, SessionPhase.CLEANING.value):
            self.tray.setIcon(_create_icon(ICON_BUSY))
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
        self._refresh_status()

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.tray.showMessage("yap", msg, QSystemTrayIcon.Warning, 3000)

    def _on_result_ui(self, text: str) -> None:
        self.tray.setToolTip(f"yap: {word_count(text)} words, {char_count(text)} chars")

    def _on_recent_ui(self, items: list) -> None:
        self._recent_menu.clear()
        for index, label in enumerate(menu_labels(items)):
            action = QAction(label, self._recent_menu)
            action.setEnabled(bool(items))
            action.triggered.connect(lambda _=False, i=index: self.clipboard.copy_recent(i))
            self._recent_menu.addAction(action)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _change_cleanup_model(self, model: str) -> None:
        await self.cleanup.set_model(model)
        self.modes.cleanup_available = await self.cleanup.is_cleanup_available()

    async def _remember_and_load_model(self, path: str) -> CommandResult[None]:
        self.config_store.set_model_path(path)
        return await self.session.load_model(path)

    async def _startup(self) -> Optional[TranscriptRecord]:
        restored = self.history.take_rehydrated()
        if restored is not None:
            self.session.last_result = restored
        await self.session.auto_load_model(self.config_store.get_model_path())
        self.modes.cleanup_available = await self.cleanup.is_cleanup_available()
        await self.modes.restore()
        await self.devices.restore()
        await self.hotkey.apply()
        return restored

    def run(self) -> int:
        self.runner.start()
        try:
            self.hotkey_service.start(
                on_pressed=self.triggers.post_hotkey_pressed,
                on_released=self.triggers.post_hotkey_released,
            )
        except Exception as exc:
            logger.warning("Hotkey disabled: {}", exc)
            self.tray.showMessage("yap", f"Hotkey disabled: {exc}", QSystemTrayIcon.Warning, 3000)
        future = self.runner.submit(self._startup())
        future.add_done_callback(lambda _: self.ui.state_signal.emit("", self.session.current_phase.value))
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey_service.stop()
        self.runner.submit(self.cleanup.aclose()).result(timeout=1.0)
        self.runner.stop()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
