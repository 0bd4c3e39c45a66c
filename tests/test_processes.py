from __future__ import annotations

import os
import subprocess
import sys

import psutil
import pytest

from serverbee_deploy.core.processes import KillResult, kill_process


class TestKillProcess:
    @pytest.mark.parametrize("pid", ["abc", "", "-5", "0", "1.5"])
    def test_malformed_pid(self, pid: str):
        assert kill_process(pid) == KillResult(False, "invalid pid")

    def test_refuses_own_pid(self):
        result = kill_process(str(os.getpid()))
        assert result.success is False

    def test_not_found(self, monkeypatch):
        def missing(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "Process", missing)
        assert kill_process("424242") == KillResult(False, "process not found")

    def test_access_denied(self, monkeypatch):
        def denied(pid):
            raise psutil.AccessDenied(pid)

        monkeypatch.setattr(psutil, "Process", denied)
        assert kill_process("1") == KillResult(False, "permission denied")

    def test_kills_real_child(self):
        child = subprocess.Popen(
            [sys.executable, "-c", "import time; time.sleep(30)"],
        )
        try:
            assert kill_process(str(child.pid)) == KillResult(True)
            assert child.wait(timeout=5) != 0 or os.name == "nt"
        finally:
            if child.poll() is None:
                child.kill()


def test_to_dict_omits_empty_message():
    assert KillResult(True).to_dict() == {"success": True}
    assert KillResult(False, "x").to_dict() == {"success": False, "message": "x"}
