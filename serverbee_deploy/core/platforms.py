"""Release asset naming for the host platform."""
from __future__ import annotations

import logging
import platform
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WEB_BIN_NAME = "serverbee-web"

MACOS = "macos"
LINUX = "linux"
WINDOWS = "windows"

X86_64 = "x86_64"
AARCH64 = "aarch64"

_OS_ALIASES = {
    "darwin": MACOS,
    "macos": MACOS,
    "linux": LINUX,
    "windows": WINDOWS,
}

_ARCH_ALIASES = {
    "x86_64": X86_64,
    "amd64": X86_64,
    "aarch64": AARCH64,
    "arm64": AARCH64,
}


class UnsupportedPlatformError(RuntimeError):
    """No release is published for this CPU architecture."""


@dataclass(frozen=True)
class HostPlatform:
    os: str
    arch: str

    @property
    def is_windows(self) -> bool:
        return self.os == WINDOWS


def detect_platform() -> HostPlatform:
    """Normalize ``platform.system()`` / ``platform.machine()``.

    Unknown values are passed through lower-cased so the resolver can
    decide what to do with them.
    """
    system = platform.system().lower()
    machine = platform.machine().lower()
    return HostPlatform(
        os=_OS_ALIASES.get(system, system),
        arch=_ARCH_ALIASES.get(machine, machine),
    )


def _x86_64_filename(os_name: str) -> str:
    if os_name == MACOS:
        return "serverbee-web-x86_64-apple-darwin.zip"
    if os_name == LINUX:
        return "serverbee-web-x86_64-unknown-linux-musl.zip"
    if os_name == WINDOWS:
        return "serverbee-web-x86_64-pc-windows-gnu.zip"
    logger.warning("Unknown OS %r, falling back to linux-musl build", os_name)
    return "serverbee-web-x86_64-unknown-linux-musl.zip"


def _aarch64_filename(os_name: str) -> str:
    if os_name == MACOS:
        return "serverbee-web-aarch64-apple-darwin.zip"
    if os_name == LINUX:
        return "serverbee-web-aarch64-unknown-linux-musl.zip"
    if os_name == WINDOWS:
        return "serverbee-web-aarch64-pc-windows-gnu.zip"
    logger.warning("Unknown OS %r, falling back to linux-musl build", os_name)
    return "serverbee-web-aarch64-unknown-linux-musl.zip"


def resolve_filename(os_name: str, arch: str) -> str:
    """Archive filename of the serverbee-web release for (*os_name*, *arch*)."""
    if arch == X86_64:
        return _x86_64_filename(os_name)
    if arch == AARCH64:
        return _aarch64_filename(os_name)
    raise UnsupportedPlatformError(f"No serverbee-web release for arch {arch!r}")


def web_bin_filename(host: HostPlatform) -> str:
    return f"{WEB_BIN_NAME}.exe" if host.is_windows else WEB_BIN_NAME
