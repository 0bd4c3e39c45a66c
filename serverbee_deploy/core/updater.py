"""Download and unpack the serverbee-web release for the current version.

No checksum or signature is verified; the archive is trusted as served.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import stat
import zipfile
from pathlib import Path

import aiohttp

from serverbee_deploy.core.release import ReleaseLocator

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 300.0
_CHUNK_SIZE = 64 * 1024
_VERSION_DIR_RE = re.compile(r"\d+\.\d+\.\d+")


class UpdateError(RuntimeError):
    """Downloading or unpacking a release failed."""


async def download(
    url: str,
    dest: Path,
    *,
    timeout: float = DOWNLOAD_TIMEOUT,
    session: aiohttp.ClientSession | None = None,
) -> Path:
    """Stream *url* into *dest* via a ``.part`` file."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    part = dest.with_name(dest.name + ".part")
    own_session = session is None
    if session is None:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout),
        )
    logger.info("Downloading %s", url)
    try:
        async with session.get(url) as resp:
            if resp.status != 200:
                raise UpdateError(f"Download failed: HTTP {resp.status} for {url}")
            size = 0
            with part.open("wb") as f:
                async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
                    f.write(chunk)
                    size += len(chunk)
        part.replace(dest)
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
        part.unlink(missing_ok=True)
        raise UpdateError(f"Download failed for {url}: {e}") from e
    finally:
        if own_session:
            await session.close()
    logger.info("Downloaded %d bytes to %s", size, dest)
    return dest


def extract(archive: Path, bin_path: Path) -> Path:
    """Unpack *archive* next to itself and make *bin_path* executable.

    Releases may nest the binary in a folder; it is moved up to *bin_path*.
    """
    dest_dir = archive.parent
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest_dir)
    except (zipfile.BadZipFile, OSError) as e:
        raise UpdateError(f"Cannot unpack {archive}: {e}") from e

    if not bin_path.is_file():
        found = next(
            (p for p in dest_dir.rglob(bin_path.name) if p.is_file()), None,
        )
        if found is None:
            raise UpdateError(f"{bin_path.name} not found in {archive.name}")
        shutil.move(str(found), bin_path)

    if os.name != "nt":
        mode = bin_path.stat().st_mode
        bin_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return bin_path


async def ensure_installed(
    release: ReleaseLocator,
    *,
    timeout: float = DOWNLOAD_TIMEOUT,
    session: aiohttp.ClientSession | None = None,
) -> Path:
    """Return the binary path, downloading and unpacking it if missing."""
    bin_path = release.web_bin_path()
    if bin_path.is_file():
        logger.info("serverbee-web %s already installed", release.version)
        return bin_path

    archive = release.web_bin_zip_path()
    await download(release.bin_zip_url(), archive, timeout=timeout, session=session)
    extract(archive, bin_path)
    archive.unlink(missing_ok=True)
    logger.info("Installed serverbee-web %s at %s", release.version, bin_path)
    return bin_path


def prune_old_versions(release: ReleaseLocator) -> list[Path]:
    """Delete install directories of other versions.  Returns what was removed."""
    removed: list[Path] = []
    current = release.web_bin_dir()
    if not release.install_root.is_dir():
        return removed
    for child in release.install_root.iterdir():
        if not child.is_dir() or child == current:
            continue
        if not _VERSION_DIR_RE.fullmatch(child.name):
            continue
        try:
            shutil.rmtree(child)
            removed.append(child)
            logger.info("Removed old install %s", child)
        except OSError as e:
            logger.warning("Cannot remove old install %s: %s", child, e)
    return removed
