from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import psutil
import pytest

from serverbee_deploy.core import subprocess_tracker


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(subprocess_tracker, "_tracked_pids", set())
    monkeypatch.setattr(subprocess_tracker, "_pid_file", None)
    subprocess_tracker.set_pid_file(tmp_path / "deploy.pids")
    return tmp_path / "deploy.pids"


class TestTracking:
    def test_track_persists(self, _isolated: Path):
        subprocess_tracker.track(11)
        subprocess_tracker.track(7)
        assert _isolated.read_text().split() == ["7", "11"]
        subprocess_tracker.untrack(11)
        assert _isolated.read_text().split() == ["7"]
        assert subprocess_tracker.tracked() == {7}

    def test_kill_all_terminates_and_clears(self, monkeypatch, _isolated: Path):
        procs = {}

        def fake_process(pid):
            procs[pid] = MagicMock()
            return procs[pid]

        monkeypatch.setattr(psutil, "Process", fake_process)
        subprocess_tracker.track(5)
        subprocess_tracker.kill_all()
        procs[5].terminate.assert_called_once()
        assert subprocess_tracker.tracked() == set()
        assert _isolated.read_text() == ""


class TestCleanupStale:
    def test_only_matching_names_are_terminated(self, monkeypatch, _isolated: Path):
        _isolated.write_text("100\n200\nnot-a-pid\n300\n")
        procs = {
            100: MagicMock(**{"name.return_value": "serverbee-web"}),
            200: MagicMock(**{"name.return_value": "bash"}),
        }

        def fake_process(pid):
            if pid not in procs:
                raise psutil.NoSuchProcess(pid)
            return procs[pid]

        monkeypatch.setattr(psutil, "Process", fake_process)
        killed = subprocess_tracker.cleanup_stale_pids("serverbee-web")

        assert killed == 1
        procs[100].terminate.assert_called_once()
        procs[200].terminate.assert_not_called()
        assert not _isolated.exists()

    def test_no_pid_file(self, _isolated: Path):
        assert subprocess_tracker.cleanup_stale_pids("serverbee-web") == 0
