"""Tracks the managed web binary's PIDs so they die with the supervisor.

An ``atexit`` handler terminates every tracked PID.  PIDs are also written
to a file so that a web binary orphaned by a crashed supervisor is reaped on
the next start, but only if the PID still belongs to a process with the
expected executable name.
"""
from __future__ import annotations

import atexit
import logging
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)

_tracked_pids: set[int] = set()
_pid_file: Path | None = None


def set_pid_file(path: str | Path) -> None:
    """Set the path for persisting tracked PIDs (call once at startup)."""
    global _pid_file
    _pid_file = Path(path)


def tracked() -> set[int]:
    return set(_tracked_pids)


def track(pid: int) -> None:
    _tracked_pids.add(pid)
    _save()


def untrack(pid: int) -> None:
    _tracked_pids.discard(pid)
    _save()


def _terminate(pid: int) -> bool:
    try:
        psutil.Process(pid).terminate()
        return True
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied as e:
        logger.debug("Cannot terminate PID %d: %s", pid, e)
        return False


def kill_all() -> None:
    """Terminate all tracked PIDs (called by atexit)."""
    for pid in list(_tracked_pids):
        if _terminate(pid):
            logger.debug("Terminated tracked PID %d", pid)
    _tracked_pids.clear()
    _save()


def cleanup_stale_pids(expected_name: str) -> int:
    """Terminate leftovers from a previous run whose name is *expected_name*.

    Returns the number of processes terminated.
    """
    if not _pid_file or not _pid_file.exists():
        return 0
    killed = 0
    try:
        lines = _pid_file.read_text().splitlines()
    except OSError as e:
        logger.warning("Cannot read PID file %s: %s", _pid_file, e)
        return 0
    for line in lines:
        line = line.strip()
        if not line.isdigit():
            continue
        pid = int(line)
        try:
            name = psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if name != expected_name:
            logger.debug("PID %d is now %r, leaving it alone", pid, name)
            continue
        if _terminate(pid):
            killed += 1
            logger.info("Terminated stale %s PID %d", expected_name, pid)
    try:
        _pid_file.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Cannot remove PID file %s: %s", _pid_file, e)
    return killed


def _save() -> None:
    if not _pid_file:
        return
    try:
        _pid_file.parent.mkdir(parents=True, exist_ok=True)
        _pid_file.write_text(
            "\n".join(str(pid) for pid in sorted(_tracked_pids)) + "\n"
            if _tracked_pids else ""
        )
    except OSError as e:
        logger.warning("Cannot write PID file %s: %s", _pid_file, e)


atexit.register(kill_all)
