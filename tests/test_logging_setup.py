# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

from problem_tree.logging_setup import LOG_FILE_NAME, _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_floors() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("problem_tree.store.task_store", logging.DEBUG))
    assert not f.filter(_record("problem_tree.focus.ticker", logging.INFO))
    assert f.filter(_record("problem_tree.focus.ticker", logging.WARNING))
    assert not f.filter(_record("problem_tree.store.state_file", logging.INFO))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))
    # prefix match is per dotted segment
    assert f.filter(_record("problem_tree.focus.tickerish", logging.INFO))


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs")
        assert log_file == tmp_path / "logs" / LOG_FILE_NAME
        logging.getLogger("problem_tree.test").debug("hello file")
        for h in root.handlers:
            h.flush()
        assert "hello file" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
        logging.captureWarnings(False)
