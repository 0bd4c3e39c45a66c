"""Launch-at-login registration for Linux, macOS and Windows."""
from __future__ import annotations

import logging
import os
import plistlib
from pathlib import Path

from serverbee_deploy.core.platforms import LINUX, MACOS, WINDOWS, HostPlatform
from serverbee_deploy.ports.auto_launch import AutoLaunchError, AutoLaunchPort

logger = logging.getLogger(__name__)

_WINDOWS_RUN_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"


class XdgAutostart:
    """``~/.config/autostart/<app>.desktop`` entry (freedesktop autostart)."""

    def __init__(
        self, app_name: str, app_path: str, config_home: Path | None = None,
    ) -> None:
        if config_home is None:
            config_home = Path(
                os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
            )
        self._app_name = app_name
        self._app_path = app_path
        self._path = config_home / "autostart" / f"{app_name}.desktop"

    @property
    def path(self) -> Path:
        return self._path

    def is_enabled(self) -> bool:
        return self._path.is_file()

    def enable(self) -> None:
        entry = (
            "[Desktop Entry]\n"
            "Type=Application\n"
            f"Name={self._app_name}\n"
            f"Exec={self._app_path}\n"
            "Terminal=false\n"
            "X-GNOME-Autostart-enabled=true\n"
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(entry, encoding="utf-8")
        except OSError as e:
            raise AutoLaunchError(f"Cannot write {self._path}: {e}") from e

    def disable(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise AutoLaunchError(f"Cannot remove {self._path}: {e}") from e


class LaunchAgent:
    """``~/Library/LaunchAgents/<app>.plist`` with ``RunAtLoad``."""

    def __init__(
        self, app_name: str, app_path: str, agents_dir: Path | None = None,
    ) -> None:
        if agents_dir is None:
            agents_dir = Path.home() / "Library" / "LaunchAgents"
        self._label = app_name
        self._app_path = app_path
        self._path = agents_dir / f"{app_name}.plist"

    @property
    def path(self) -> Path:
        return self._path

    def is_enabled(self) -> bool:
        return self._path.is_file()

    def enable(self) -> None:
        plist = {
            "Label": self._label,
            "ProgramArguments": [self._app_path],
            "RunAtLoad": True,
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("wb") as f:
                plistlib.dump(plist, f)
        except OSError as e:
            raise AutoLaunchError(f"Cannot write {self._path}: {e}") from e

    def disable(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise AutoLaunchError(f"Cannot remove {self._path}: {e}") from e


class WindowsRunKey:
    """``HKCU\\...\\CurrentVersion\\Run`` value."""

    def __init__(self, app_name: str, app_path: str) -> None:
        self._app_name = app_name
        self._app_path = app_path

    def is_enabled(self) -> bool:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _WINDOWS_RUN_KEY) as key:
                winreg.QueryValueEx(key, self._app_name)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise AutoLaunchError(f"Cannot read Run key: {e}") from e

    def enable(self) -> None:
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER, _WINDOWS_RUN_KEY, 0, winreg.KEY_SET_VALUE,
            ) as key:
                winreg.SetValueEx(
                    key, self._app_name, 0, winreg.REG_SZ, f'"{self._app_path}"',
                )
        except OSError as e:
            raise AutoLaunchError(f"Cannot write Run key: {e}") from e

    def disable(self) -> None:
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER, _WINDOWS_RUN_KEY, 0, winreg.KEY_SET_VALUE,
            ) as key:
                winreg.DeleteValue(key, self._app_name)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise AutoLaunchError(f"Cannot delete Run key value: {e}") from e


def build_auto_launch(
    app_name: str, app_path: str, host: HostPlatform,
) -> AutoLaunchPort:
    """Pick the launch-at-login mechanism for *host*."""
    if host.os == LINUX:
        return XdgAutostart(app_name, app_path)
    if host.os == MACOS:
        return LaunchAgent(app_name, app_path)
    if host.os == WINDOWS:
        return WindowsRunKey(app_name, app_path)
    raise AutoLaunchError(f"Auto launch is not supported on {host.os!r}")
