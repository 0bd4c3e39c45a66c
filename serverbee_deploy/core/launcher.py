"""Runs the managed serverbee-web binary as a child process."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from serverbee_deploy.core import subprocess_tracker

logger = logging.getLogger(__name__)

STOP_TIMEOUT = 10.0
RESTART_DELAY = 3.0


class WebProcess:
    """Starts serverbee-web on a port and restarts it if it exits."""

    def __init__(
        self,
        bin_path: Path,
        port: int,
        *,
        restart_delay: float = RESTART_DELAY,
    ) -> None:
        self._bin_path = bin_path
        self._port = port
        self._restart_delay = restart_delay
        self._proc: asyncio.subprocess.Process | None = None
        self._watch_task: asyncio.Task | None = None
        self._stopping = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    def command(self) -> list[str]:
        return [str(self._bin_path), "--port", str(self._port)]

    async def start(self) -> None:
        self._stopping = False
        await self._spawn()
        self._watch_task = asyncio.create_task(self._watch())

    async def _spawn(self) -> None:
        self._proc = await asyncio.create_subprocess_exec(
            *self.command(), cwd=str(self._bin_path.parent),
        )
        subprocess_tracker.track(self._proc.pid)
        logger.info(
            "Started %s (PID %d) on port %d",
            self._bin_path.name, self._proc.pid, self._port,
        )

    async def _watch(self) -> None:
        while not self._stopping:
            proc = self._proc
            if proc is None:
                return
            code = await proc.wait()
            subprocess_tracker.untrack(proc.pid)
            if self._stopping:
                return
            logger.warning(
                "%s exited with code %s, restarting in %.0fs",
                self._bin_path.name, code, self._restart_delay,
            )
            await asyncio.sleep(self._restart_delay)
            if self._stopping:
                return
            try:
                await self._spawn()
            except OSError:
                logger.exception("Failed to restart %s", self._bin_path.name)
                return

    async def stop(self) -> None:
        self._stopping = True
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("%s did not exit, killing", self._bin_path.name)
            proc.kill()
            await proc.wait()
        subprocess_tracker.untrack(proc.pid)
        logger.info("Stopped %s", self._bin_path.name)
