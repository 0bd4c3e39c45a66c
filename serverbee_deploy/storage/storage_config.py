from __future__ import annotations

import json
import logging
from typing import Any

from serverbee_deploy.cli import Port
from serverbee_deploy.storage.settings_store import SettingsStore, StoreError

logger = logging.getLogger(__name__)

PORT_KEY = "port"
GITHUB_DOWNLOAD_KEY = "is_github_download"
AUTO_LAUNCH_KEY = "auto_launch"
TOKEN_KEY = "token"


def _decode_json(store: SettingsStore, key: str) -> Any:
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StoreError(f"Corrupt value under {key!r}: {e}") from e


def read_token(store: SettingsStore) -> str | None:
    """Current communication token, or None if none is configured."""
    raw = store.get(TOKEN_KEY)
    if raw is None:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise StoreError(f"Corrupt value under {TOKEN_KEY!r}: {e}") from e


class StorageConfig:
    """Persisted settings, written through to the store on every change.

    Missing keys fall back to defaults: no port, GitHub downloads on,
    auto-launch off, no token.
    """

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

        port = _decode_json(store, PORT_KEY)
        self.port: int | None = None
        if isinstance(port, dict) and "port" in port:
            self.port = Port(int(port["port"])).get_value()
        elif port is not None:
            raise StoreError(f"Unexpected value under {PORT_KEY!r}: {port!r}")

        github = _decode_json(store, GITHUB_DOWNLOAD_KEY)
        self.use_github_mirror: bool = True if github is None else bool(github)

        auto = _decode_json(store, AUTO_LAUNCH_KEY)
        self.auto_launch_enabled: bool = bool(auto)

        self.token: str | None = read_token(store)

    @property
    def store(self) -> SettingsStore:
        return self._store

    def get_is_github_download(self) -> bool:
        return self.use_github_mirror

    def set_port(self, port: Port) -> None:
        self._store.set(
            PORT_KEY, json.dumps({"port": port.get_value()}).encode("utf-8"),
        )
        self.port = port.get_value()
        logger.info("Stored port %d", self.port)

    def set_is_github_download(self, enabled: bool) -> None:
        self._store.set(GITHUB_DOWNLOAD_KEY, json.dumps(enabled).encode("utf-8"))
        self.use_github_mirror = enabled

    def set_auto_launch(self, enabled: bool) -> None:
        self._store.set(AUTO_LAUNCH_KEY, json.dumps(enabled).encode("utf-8"))
        self.auto_launch_enabled = enabled

    def set_token(self, token: str) -> None:
        self._store.set(TOKEN_KEY, token.encode("utf-8"))
        self.token = token

    def clear_token(self) -> None:
        self._store.remove(TOKEN_KEY)
        self.token = None
