from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest

from serverbee_deploy.core import logging_setup
from serverbee_deploy.core.logging_setup import (
    LoggingAlreadyInitialized,
    LoggingConfig,
    init_logging,
)


@pytest.fixture(autouse=True)
def _reset():
    logging_setup._reset_for_tests()
    yield
    logging_setup._reset_for_tests()


class TestInitLogging:
    def test_writes_to_file_with_format(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "deploy.log"
        init_logging(LoggingConfig(log_file=log_file, console=False))
        logging.getLogger("serverbee_deploy.test").info("hello")
        logging.getLogger("serverbee_deploy.test").debug("hidden")
        for h in logging.getLogger().handlers:
            h.flush()

        text = log_file.read_text(encoding="utf-8")
        assert re.search(r"^\[\d{4}-\d\d-\d\d \d\d:\d\d:\d\d INFO\] hello$", text, re.M)
        assert "hidden" not in text

    def test_console_and_file_handlers(self, tmp_path: Path):
        init_logging(LoggingConfig(log_file=tmp_path / "deploy.log"))
        kinds = {type(h) for h in logging.getLogger().handlers}
        assert logging.FileHandler in kinds
        assert logging.StreamHandler in kinds
        assert logging_setup.is_initialized()

    def test_second_init_fails(self, tmp_path: Path):
        init_logging(LoggingConfig(log_file=tmp_path / "deploy.log", console=False))
        with pytest.raises(LoggingAlreadyInitialized):
            init_logging(LoggingConfig(log_file=tmp_path / "other.log", console=False))
        assert not (tmp_path / "other.log").exists()
