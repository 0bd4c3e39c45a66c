"""Where a given release is downloaded from and installed to."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from serverbee_deploy.core.platforms import (
    HostPlatform,
    resolve_filename,
    web_bin_filename,
)

GITHUB_BASE_URL = (
    "https://github.com/ZingerLittleBee/server_bee-backend/releases/download"
)
MIRROR_BASE_URL = "https://serverbee-1253263310.cos.ap-shanghai.myqcloud.com"


@dataclass(frozen=True)
class ReleaseLocator:
    install_root: Path
    version: str
    use_github: bool
    host: HostPlatform

    @property
    def filename(self) -> str:
        return resolve_filename(self.host.os, self.host.arch)

    def web_bin_dir(self) -> Path:
        """e.g. ``<install root>/0.1.0``"""
        return self.install_root / self.version

    def web_bin_path(self) -> Path:
        return self.web_bin_dir() / web_bin_filename(self.host)

    def web_bin_zip_path(self) -> Path:
        return self.web_bin_dir() / self.filename

    def bin_zip_url(self) -> str:
        # GitHub tags carry a "v" prefix, the mirror's folders do not.
        if self.use_github:
            return f"{GITHUB_BASE_URL}/v{self.version}/{self.filename}"
        return f"{MIRROR_BASE_URL}/{self.version}/{self.filename}"
