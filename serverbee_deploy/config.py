"""Configuration manager — port, version and persisted settings.

``Config`` is the only writer of persisted settings.  It reconciles the
in-memory port with the store at construction and keeps both in sync on
every setter call.
"""
from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Callable

from serverbee_deploy.adapters.auto_launch.registry import build_auto_launch
from serverbee_deploy.cli import Port
from serverbee_deploy.core.platforms import HostPlatform, detect_platform
from serverbee_deploy.core.release import ReleaseLocator
from serverbee_deploy.ports.auto_launch import AutoLaunchError, AutoLaunchPort
from serverbee_deploy.storage.settings_store import SettingsStore
from serverbee_deploy.storage.storage_config import StorageConfig, read_token
from serverbee_deploy.version import __version__

logger = logging.getLogger(__name__)

APP_NAME = "serverbee-deploy"
LOG_FILE_NAME = "deploy.log"
DB_FILE_NAME = "deploy.db"
AUTO_LAUNCH_TIMEOUT = 10.0

AutoLaunchFactory = Callable[[str, str, HostPlatform], AutoLaunchPort]


class InstallRootError(RuntimeError):
    """Neither the executable's directory nor the working directory is usable."""


def current_exe() -> Path | None:
    """Path of the running executable, or None if it cannot be determined."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    if sys.argv and sys.argv[0]:
        exe = Path(sys.argv[0]).resolve()
        if exe.is_file():
            return exe
    return None


class Config:
    def __init__(
        self,
        store: SettingsStore,
        *,
        version: str = __version__,
        install_root: Path | None = None,
        host: HostPlatform | None = None,
        auto_launch_factory: AutoLaunchFactory = build_auto_launch,
        auto_launch_timeout: float = AUTO_LAUNCH_TIMEOUT,
    ) -> None:
        self._lock = threading.RLock()
        self._install_root = install_root or Config.current_dir()
        self._host = host or detect_platform()
        self._auto_launch_factory = auto_launch_factory
        self._auto_launch_timeout = auto_launch_timeout

        port = Port()
        storage_config = StorageConfig(store)
        if storage_config.port is not None:
            port = Port(storage_config.port)
        else:
            storage_config.set_port(port)

        self._port = port
        self._version = version
        self._storage_config = storage_config

    # -- Accessors -----------------------------------------------------------

    @property
    def storage_config(self) -> StorageConfig:
        return self._storage_config

    @property
    def host(self) -> HostPlatform:
        return self._host

    @property
    def install_root(self) -> Path:
        return self._install_root

    def get_version(self) -> str:
        return self._version

    def get_port(self) -> int:
        return self._port.get_value()

    def get_is_github_download(self) -> bool:
        return self._storage_config.get_is_github_download()

    def get_auto_launch(self) -> bool:
        return self._storage_config.auto_launch_enabled

    def get_token(self) -> str | None:
        return self._storage_config.token

    # -- Mutators (write-through) -------------------------------------------

    def set_version(self, version: str) -> None:
        with self._lock:
            self._version = version

    def set_port(self, port: Port) -> None:
        with self._lock:
            self._storage_config.set_port(port)
            self._port = port

    def set_is_github_download(self, is_github_download: bool) -> None:
        with self._lock:
            self._storage_config.set_is_github_download(is_github_download)

    def set_token(self, token: str) -> None:
        with self._lock:
            self._storage_config.set_token(token)
        logger.info("Communication token updated")

    def setup_token(self, token: str) -> bool:
        """Store *token* only if none is configured.  Returns False otherwise."""
        with self._lock:
            if read_token(self._storage_config.store) is not None:
                return False
            self._storage_config.set_token(token)
        logger.info("Initial communication token configured")
        return True

    def clear_token(self) -> None:
        with self._lock:
            self._storage_config.clear_token()
        logger.info("Communication token cleared")

    def set_auto_launch(self, enable: bool) -> None:
        """Register or unregister launch at login.

        The requested state is persisted first, even when the OS call later
        fails.  OS failures (including a timeout) raise ``AutoLaunchError``.
        """
        with self._lock:
            self._storage_config.set_auto_launch(enable)

        exe = current_exe()
        if exe is None:
            raise AutoLaunchError("Cannot determine the executable to register")
        logger.info("Auto launch executable: %s", exe)

        self._call_with_timeout(lambda: self._apply_auto_launch(str(exe), enable))

    def _apply_auto_launch(self, app_path: str, enable: bool) -> None:
        auto = self._auto_launch_factory(APP_NAME, app_path, self._host)
        if enable:
            if auto.is_enabled():
                logger.info("Auto launch already enabled, nothing to do")
            else:
                auto.enable()
                logger.info("Auto launch enabled")
        elif auto.is_enabled():
            auto.disable()
            logger.info("Auto launch disabled")
        else:
            logger.info("Auto launch already disabled")

    def _call_with_timeout(self, fn: Callable[[], None]) -> None:
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            executor.submit(fn).result(timeout=self._auto_launch_timeout)
        except FutureTimeoutError as e:
            raise AutoLaunchError(
                f"Auto launch call timed out after {self._auto_launch_timeout}s"
            ) from e
        except AutoLaunchError:
            raise
        except Exception as e:
            raise AutoLaunchError(f"Auto launch call failed: {e}") from e
        finally:
            executor.shutdown(wait=False)

    # -- Release locations ---------------------------------------------------

    def release(self) -> ReleaseLocator:
        return ReleaseLocator(
            install_root=self._install_root,
            version=self._version,
            use_github=self.get_is_github_download(),
            host=self._host,
        )

    def web_bin_dir(self) -> Path:
        return self.release().web_bin_dir()

    def web_bin_path(self) -> Path:
        return self.release().web_bin_path()

    def web_bin_zip_path(self) -> Path:
        return self.release().web_bin_zip_path()

    def bin_zip_url(self) -> str:
        return self.release().bin_zip_url()

    # -- Process-wide paths --------------------------------------------------

    @staticmethod
    def current_dir() -> Path:
        """Directory of the running executable, else the working directory."""
        exe = current_exe()
        if exe is not None:
            return exe.parent
        try:
            return Path.cwd()
        except OSError as e:
            raise InstallRootError(
                "Cannot resolve an install root: executable path is unknown "
                f"and the current directory is unavailable ({e})"
            ) from e

    @staticmethod
    def deploy_log_path(root: Path | None = None) -> Path:
        return (root or Config.current_dir()) / LOG_FILE_NAME

    @staticmethod
    def default_db_path(root: Path | None = None) -> Path:
        return (root or Config.current_dir()) / DB_FILE_NAME
