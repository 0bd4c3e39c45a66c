"""One-shot process-wide logging bootstrap (console + log file)."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

LOG_FORMAT = "[%(asctime)s %(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_init_lock = threading.Lock()
_handlers: list[logging.Handler] = []
_initialized = False


class LoggingAlreadyInitialized(RuntimeError):
    pass


@dataclass(frozen=True)
class LoggingConfig:
    log_file: Path
    level: int = logging.INFO
    fmt: str = LOG_FORMAT
    datefmt: str = DATE_FORMAT
    console: bool = True


def init_logging(config: LoggingConfig) -> None:
    """Attach console and file handlers to the root logger.

    Must be called once, before anything else logs.  A second call raises
    ``LoggingAlreadyInitialized`` instead of reconfiguring.
    """
    global _initialized
    with _init_lock:
        if _initialized:
            raise LoggingAlreadyInitialized("Logging has already been initialized")

        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers: list[logging.Handler] = [
            logging.FileHandler(config.log_file, encoding="utf-8"),
        ]
        if config.console:
            handlers.append(logging.StreamHandler())

        formatter = logging.Formatter(config.fmt, datefmt=config.datefmt)
        root = logging.getLogger()
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)
        root.setLevel(config.level)

        _handlers.extend(handlers)
        _initialized = True


def is_initialized() -> bool:
    return _initialized


def _reset_for_tests() -> None:
    global _initialized
    with _init_lock:
        root = logging.getLogger()
        for handler in _handlers:
            root.removeHandler(handler)
            handler.close()
        _handlers.clear()
        root.setLevel(logging.WARNING)
        _initialized = False
