# tests/fakes.py

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from problem_tree.core.models import AppState, Problem, ProblemStatus, default_state
from problem_tree.store.state_file import PersistenceError


@dataclass(slots=True)
class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    now: int = 1_700_000_000_000

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass(slots=True)
class MemoryRepo:
    """
    In-memory StateRepo.

    Records every saved snapshot; `fail_saves` makes save() raise like a full disk.
    """

    initial: AppState = field(default_factory=default_state)
    saved: list[AppState] = field(default_factory=list)
    fail_saves: bool = False

    def load(self) -> AppState:
        return self.initial

    def save(self, state: AppState) -> None:
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.saved.append(state)


class RecordingUpdater:
    """
    ProblemUpdater holding a single problem.

    Applies patches like the store does for the fields a focus session uses,
    and keeps every patch for assertions.
    """

    def __init__(self, problem: Problem) -> None:
        self.problem: Problem | None = problem
        self.calls: list[dict[str, Any]] = []

    def get_problem(self, problem_id: str) -> Problem | None:
        if self.problem is not None and self.problem.id == problem_id:
            return self.problem
        return None

    def update_problem_anywhere(self, problem_id: str, **fields: Any) -> None:
        self.calls.append(dict(fields))
        if self.problem is None or self.problem.id != problem_id:
            return
        if "completed" in fields and "status" not in fields:
            fields["status"] = ProblemStatus.SOLVED if fields["completed"] else ProblemStatus.TO_SOLVE
        self.problem = dataclasses.replace(self.problem, **fields)
