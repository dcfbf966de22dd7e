# src/problem_tree/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "problem-tree.log"

# Per-logger console floors. Everything here still reaches the log file.
CONSOLE_FLOORS: dict[str, int] = {
    # background thread; printing mid-prompt garbles the REPL
    "problem_tree.focus.ticker": logging.WARNING,
    # one line per save
    "problem_tree.store.state_file": logging.WARNING,
    "py.warnings": logging.ERROR,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while commands print their own replies:
    problem_tree loggers pass (except the floors above), third parties only at ERROR+.
    """

    def __init__(self, floors: dict[str, int] | None = None) -> None:
        super().__init__()
        self._floors = dict(CONSOLE_FLOORS if floors is None else floors)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for prefix, floor in self._floors.items():
            if name == prefix or name.startswith(prefix + "."):
                return record.levelno >= floor

        if name.startswith("problem_tree."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/problem-tree",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backups: int = 3,
) -> Path:
    """
    Configure the root logger once, before the first log line:
    - stderr handler at console_level, filtered for interactive use
    - rotating file handler at file_level in log_dir

    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
