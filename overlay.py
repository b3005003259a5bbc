"""Overlay window showing the session state and the active mode."""

from __future__ import annotations

from models import DEFAULT_MODE_ID, OverlayState

try:
    from PySide6.QtCore import QObject, Qt, Signal
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    QObject = object  # type: ignore
    Qt = None  # type: ignore
    Signal = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

STATE_LABELS = {
    OverlayState.RECORDING: "🎙️ Listening",
    OverlayState.PROCESSING: "⏳ Transcribing",
    OverlayState.GENERATING: "✨ Generating",
    OverlayState.DONE: "✅ Copied",
}
STATE_COLORS = {
    OverlayState.RECORDING: "#FF4444",
    OverlayState.PROCESSING: "#FFB020",
    OverlayState.GENERATING: "#4FC3F7",
    OverlayState.DONE: "#5AD17A",
}


def overlay_text(state: OverlayState, mode_name: str) -> str:
    label = STATE_LABELS[state]
    if mode_name and state in (OverlayState.RECORDING, OverlayState.GENERATING):
        return f"{label} · {mode_name}"
    return label


class OverlayWindow(QWidget):
    def __init__(self, mode_names: dict[str, str] | None = None) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool | Qt.WindowDoesNotAcceptFocus
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)

        self._mode_names = mode_names or {}
        self._mode_id = DEFAULT_MODE_ID
        self._state = OverlayState.RECORDING

        self._label = QLabel("")
        self._label.setAlignment(Qt.AlignCenter)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

    def _bottom_center(self) -> None:
        """Position the window 100px above the bottom of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + geom.height() - self.height() - 100
        self.move(x, y)

    def show_state(self, state: str, mode_id: str) -> None:
        self._mode_id = mode_id
        self.set_state(state)
        self._bottom_center()
        self.show()

    def set_state(self, state: str) -> None:
        self._state = OverlayState(state)
        self._render()

    def set_mode(self, mode_id: str) -> None:
        self._mode_id = mode_id
        self._render()

    def _render(self) -> None:
        color = STATE_COLORS[self._state]
        self._label.setStyleSheet(
            f"color: white; font-size: 13px; padding: 6px 14px;"
            f"background: rgba(0,0,0,200); border: 1px solid {color}; border-radius: 14px;"
        )
        self._label.setText(overlay_text(self._state, self._mode_names.get(self._mode_id, "")))
        self.adjustSize()


class OverlayBridge(QObject):
    """Overlay collaborator for the session loop; calls cross to the Qt thread as signals."""

    if Signal is not None:
        show_signal = Signal(str, str)
        state_signal = Signal(str)
        mode_signal = Signal(str)
        hide_signal = Signal()

    def __init__(self, window: OverlayWindow) -> None:
        super().__init__()
        self.show_signal.connect(window.show_state)
        self.state_signal.connect(window.set_state)
        self.mode_signal.connect(window.set_mode)
        self.hide_signal.connect(window.hide)

    async def show(self, state: OverlayState, mode_id: str) -> None:
        self.show_signal.emit(state.value, mode_id)

    async def set_state(self, state: OverlayState) -> None:
        self.state_signal.emit(state.value)

    async def set_mode(self, mode_id: str) -> None:
        self.mode_signal.emit(mode_id)

    async def hide(self) -> None:
        self.hide_signal.emit()
