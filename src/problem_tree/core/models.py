# src/problem_tree/core/models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

INBOX_ID = "inbox"
INBOX_NAME = "Inbox"
INBOX_DESCRIPTION = "Default list"


class ProblemStatus(StrEnum):
    """
    Workflow label of a problem.

    Not derived from `completed`; the store keeps the two loosely in sync
    (completed -> solved, uncompleted -> to_solve).
    """

    TO_SOLVE = "to_solve"
    SOLVING = "solving"
    BLOCKED = "blocked"
    ONGOING = "ongoing"
    SOLVED = "solved"

    @classmethod
    def from_raw(cls, raw: str | None) -> ProblemStatus:
        if not raw:
            return cls.TO_SOLVE
        try:
            return cls(raw)
        except ValueError:
            return cls.TO_SOLVE


class Priority(StrEnum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    LATER = "later"
    RECURRING = "recurring"
    SOMEDAY = "someday"

    @classmethod
    def from_raw(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.SOMEDAY
        try:
            return cls(raw)
        except ValueError:
            return cls.SOMEDAY


class Layout(StrEnum):
    SINGLE_COLUMN = "single-column"
    TWO_COLUMNS = "two-columns"

    @classmethod
    def from_raw(cls, raw: str | None) -> Layout:
        # "one-column" is what older snapshots stored.
        if raw == "one-column":
            return cls.SINGLE_COLUMN
        try:
            return cls(raw or cls.SINGLE_COLUMN)
        except ValueError:
            return cls.SINGLE_COLUMN


class ViewName(StrEnum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    UPCOMING = "upcoming"
    NEXT_ACTIONS = "next_actions"
    UNFINISHED = "unfinished"
    INBOX = "inbox"
    LISTS = "lists"

    @classmethod
    def from_raw(cls, raw: str | None) -> ViewName:
        try:
            return cls(raw or cls.TODAY)
        except ValueError:
            return cls.TODAY


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """One contiguous interval of focused work, in epoch milliseconds."""

    start_ms: int
    end_ms: int
    duration_ms: int


@dataclass(frozen=True, slots=True)
class Problem:
    id: str
    name: str
    notes: str = ""
    due_date: date | None = None
    subproblems: tuple[Problem, ...] = ()
    completed: bool = False
    status: ProblemStatus = ProblemStatus.TO_SOLVE
    priority: Priority = Priority.SOMEDAY

    estimated_duration_ms: int | None = None
    total_time_ms: int | None = None
    sessions: tuple[SessionRecord, ...] = ()
    completed_at_ms: int | None = None


@dataclass(frozen=True, slots=True)
class TaskList:
    id: str
    name: str
    description: str = ""
    emoji: str | None = None
    problems: tuple[Problem, ...] = ()


@dataclass(frozen=True, slots=True)
class AppSettings:
    layout: Layout = Layout.SINGLE_COLUMN
    default_view: ViewName = ViewName.TODAY


@dataclass(frozen=True, slots=True)
class AppState:
    lists: tuple[TaskList, ...] = ()
    settings: AppSettings = field(default_factory=AppSettings)

    def get_list(self, list_id: str) -> TaskList | None:
        for task_list in self.lists:
            if task_list.id == list_id:
                return task_list
        return None


def default_state() -> AppState:
    """Fresh state: exactly one empty inbox."""
    return AppState(
        lists=(TaskList(id=INBOX_ID, name=INBOX_NAME, description=INBOX_DESCRIPTION),),
    )


PROBLEM_FIELDS = frozenset(Problem.__dataclass_fields__)
LIST_PATCH_FIELDS = frozenset({"name", "description", "emoji"})
SETTINGS_FIELDS = frozenset(AppSettings.__dataclass_fields__)
