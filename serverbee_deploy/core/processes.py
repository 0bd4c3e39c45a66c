from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)


@dataclass
class KillResult:
    success: bool
    message: str | None = None

    def to_dict(self) -> dict:
        d: dict = {"success": self.success}
        if self.message is not None:
            d["message"] = self.message
        return d


def kill_process(pid: str) -> KillResult:
    """Kill the process identified by the decimal string *pid*."""
    try:
        pid_value = int(str(pid).strip())
    except ValueError:
        return KillResult(False, "invalid pid")
    if pid_value <= 0:
        return KillResult(False, "invalid pid")
    if pid_value == os.getpid():
        return KillResult(False, "refusing to kill the supervisor")

    try:
        proc = psutil.Process(pid_value)
        name = proc.name()
        proc.kill()
    except psutil.NoSuchProcess:
        return KillResult(False, "process not found")
    except psutil.AccessDenied:
        logger.warning("Permission denied killing PID %d", pid_value)
        return KillResult(False, "permission denied")
    logger.info("Killed PID %d (%s)", pid_value, name)
    return KillResult(True)
