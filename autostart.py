"""Start-at-login registration (XDG autostart, macOS LaunchAgent, Windows Run key)."""

from __future__ import annotations

import plistlib
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from models import CommandResult

APP_NAME = "yap"
LAUNCH_AGENT_LABEL = "com.yap.dictation"
_RUN_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"


def default_command() -> list[str]:
    script = shutil.which(APP_NAME)
    if script:
        return [script]
    return [sys.executable, "-m", "main"]


class LoginItem:
    def __init__(
        self,
        command: Optional[list[str]] = None,
        platform: str = sys.platform,
        home: Optional[Path] = None,
    ) -> None:
        self._command = command or default_command()
        self._platform = platform
        self._home = home or Path.home()

    @property
    def path(self) -> Optional[Path]:
        if self._platform == "darwin":
            return self._home / "Library" / "LaunchAgents" / f"{LAUNCH_AGENT_LABEL}.plist"
        if self._platform.startswith("win"):
            return None
        return self._home / ".config" / "autostart" / f"{APP_NAME}.desktop"

    def is_enabled(self) -> bool:
        if self._platform.startswith("win"):
            return self._windows_enabled()
        path = self.path
        return path is not None and path.exists()

    def set_enabled(self, enabled: bool) -> CommandResult[None]:
        try:
            if self._platform.startswith("win"):
                self._set_windows(enabled)
            elif enabled:
                self._write_entry()
            else:
                self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to update start at login: {}", exc)
            return CommandResult.failure(str(exc))
        logger.info("Start at login {}", "enabled" if enabled else "disabled")
        return CommandResult.success()

    def _write_entry(self) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        if self._platform == "darwin":
            agent = {"Label": LAUNCH_AGENT_LABEL, "ProgramArguments": self._command, "RunAtLoad": True}
            path.write_bytes(plistlib.dumps(agent))
            return
        path.write_text(
            "[Desktop Entry]\n"
            "Type=Application\n"
            f"Name={APP_NAME}\n"
            f"Exec={shlex.join(self._command)}\n"
            "X-GNOME-Autostart-enabled=true\n",
            encoding="utf-8",
        )

    def _set_windows(self, enabled: bool) -> None:
        import winreg  # type: ignore

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _RUN_KEY, 0, winreg.KEY_SET_VALUE) as key:
            if enabled:
                winreg.SetValueEx(key, APP_NAME, 0, winreg.REG_SZ, subprocess.list2cmdline(self._command))
            else:
                try:
                    winreg.DeleteValue(key, APP_NAME)
                except FileNotFoundError:
                    pass

    def _windows_enabled(self) -> bool:
        try:
            import winreg  # type: ignore

            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _RUN_KEY, 0, winreg.KEY_READ) as key:
                winreg.QueryValueEx(key, APP_NAME)
        except (ImportError, OSError):
            return False
        return True
