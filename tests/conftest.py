# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from problem_tree.core.context import AppContext
from problem_tree.store.state_file import JsonStateFile
from problem_tree.store.task_store import TaskStore

from .fakes import FakeClock, MemoryRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppContext and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="problem-tree-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        state_path=tmp_path / "state.json",
        tick_seconds=0.05,
        debug_unique_ids=True,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def repo() -> MemoryRepo:
    return MemoryRepo()


@pytest.fixture()
def store(repo: MemoryRepo, clock: FakeClock) -> TaskStore:
    """TaskStore over an in-memory repo with a fixed clock and id checks on."""
    return TaskStore(repo, clock=clock, debug_unique_ids=True)


@pytest.fixture()
def ctx(settings: SimpleNamespace) -> AppContext:
    """
    AppContext backed by a real JSON file in tmp_path.

    NOTE: the real JsonStateFile is used here because command tests should
    also prove that what they change is persisted.
    """
    store = TaskStore(JsonStateFile(settings.state_path), debug_unique_ids=True)
    return AppContext(settings=settings, store=store)
