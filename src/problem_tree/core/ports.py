# src/problem_tree/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The store and the focus timer depend on Protocols instead of concrete
implementations, so persistence and the clock stay swappable in tests.
"""

from typing import Any, Callable, Protocol

from .models import AppState, Problem

Clock = Callable[[], int]
# Wall clock in epoch milliseconds.


class StateRepo(Protocol):
    """Durable storage for whole-state snapshots."""

    def load(self) -> AppState: ...
    def save(self, state: AppState) -> None: ...


class ProblemUpdater(Protocol):
    """
    The slice of the task store a focus session is allowed to use.

    A session never reads or writes lists directly; it looks its problem up
    by id and patches it.
    """

    def get_problem(self, problem_id: str) -> Problem | None: ...
    def update_problem_anywhere(self, problem_id: str, **fields: Any) -> Any: ...
