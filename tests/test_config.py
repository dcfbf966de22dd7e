# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from problem_tree.config import Settings


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "APP_NAME",
        "LOG_LEVEL",
        "CONSOLE_ENABLED",
        "DATA_DIR",
        "STATE_PATH",
        "TICK_SECONDS",
        "DEBUG_UNIQUE_IDS",
    ):
        monkeypatch.delenv(f"PROBLEMS_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    s = Settings.from_env()
    assert s.app_name == "problem-tree"
    assert s.console_enabled is True
    assert s.data_dir == Path(".local/problem-tree")
    assert s.state_path == Path(".local/problem-tree/state.json")
    assert s.tick_seconds == 1.0
    assert s.debug_unique_ids is False


def test_env_overrides(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("PROBLEMS_DATA_DIR", str(tmp_path))
    clean_env.setenv("PROBLEMS_CONSOLE_ENABLED", "no")
    clean_env.setenv("PROBLEMS_TICK_SECONDS", "0.001")
    clean_env.setenv("PROBLEMS_DEBUG_UNIQUE_IDS", "yes")

    s = Settings.from_env()
    assert s.state_path == tmp_path / "state.json"
    assert s.console_enabled is False
    assert s.tick_seconds == 0.05
    assert s.debug_unique_ids is True


def test_bad_numbers_fall_back(clean_env) -> None:
    clean_env.setenv("PROBLEMS_TICK_SECONDS", "fast")
    assert Settings.from_env().tick_seconds == 1.0
