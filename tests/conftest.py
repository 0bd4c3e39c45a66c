from __future__ import annotations

from pathlib import Path

import pytest

from serverbee_deploy.config import Config
from serverbee_deploy.core.platforms import HostPlatform
from serverbee_deploy.storage.settings_store import SettingsStore


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Provide an isolated data directory for stores."""
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def store(data_dir: Path):
    s = SettingsStore(data_dir / "deploy.db")
    yield s
    s.close()


@pytest.fixture
def linux_host() -> HostPlatform:
    return HostPlatform(os="linux", arch="x86_64")


@pytest.fixture
def config(store: SettingsStore, tmp_path: Path, linux_host: HostPlatform) -> Config:
    return Config(
        store, version="1.2.3", install_root=tmp_path / "root", host=linux_host,
    )
