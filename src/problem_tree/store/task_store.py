# src/problem_tree/store/task_store.py

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from ..core.models import (
    INBOX_DESCRIPTION,
    INBOX_ID,
    INBOX_NAME,
    LIST_PATCH_FIELDS,
    PROBLEM_FIELDS,
    SETTINGS_FIELDS,
    AppState,
    Layout,
    Priority,
    Problem,
    ProblemStatus,
    TaskList,
    ViewName,
    new_id,
    now_ms,
)
from ..core.ports import StateRepo
from ..views.dates import parse_due_date
from . import tree
from .state_file import has_inbox

logger = logging.getLogger(__name__)

LEGACY_INBOX_NAME = "📥 Inbox"

Subscriber = Callable[[AppState], None]


class MutationOutcome(StrEnum):
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class MutationResult:
    """
    Outcome of a store command.

    `state` is always the store's snapshot after the command (unchanged for
    not_found / rejected). `target_id` is the id created or touched, if any.
    """

    outcome: MutationOutcome
    state: AppState
    target_id: str | None = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is MutationOutcome.APPLIED


class DuplicateIdError(AssertionError):
    """Two nodes share an id (only checked when debug_unique_ids is on)."""


def _coerce_problem_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - PROBLEM_FIELDS
    if unknown:
        raise ValueError(f"unknown problem fields: {', '.join(sorted(unknown))}")
    if "id" in fields or "subproblems" in fields:
        raise ValueError("id and subproblems cannot be patched; use move/reorder/delete")

    out = dict(fields)
    if "status" in out:
        out["status"] = ProblemStatus(out["status"])
    if "priority" in out:
        out["priority"] = Priority(out["priority"])
    if "due_date" in out:
        raw = out["due_date"]
        if isinstance(raw, str):
            out["due_date"] = parse_due_date(raw) if raw else None
        elif raw is not None and not isinstance(raw, date):
            raise ValueError(f"due_date must be a date, 'YYYY-MM-DD' or None, got {raw!r}")
    if "name" in out and not str(out["name"]).strip():
        raise ValueError("name is required")
    if "sessions" in out:
        out["sessions"] = tuple(out["sessions"])
    if "completed" in out:
        out["completed"] = bool(out["completed"])
    return out


def _cascade_completion(problems: tuple[Problem, ...], completed: bool, ts: int) -> tuple[Problem, ...]:
    return tuple(
        dataclasses.replace(
            p,
            completed=completed,
            status=ProblemStatus.SOLVED if completed else ProblemStatus.TO_SOLVE,
            completed_at_ms=_completed_at(p, completed, ts),
            subproblems=_cascade_completion(p.subproblems, completed, ts),
        )
        for p in problems
    )


def _completed_at(p: Problem, completed: bool, ts: int) -> int | None:
    if not completed:
        return None
    # Keep the original stamp when it was already completed.
    if p.completed and p.completed_at_ms is not None:
        return p.completed_at_ms
    return ts


class TaskStore:
    """
    Single owner of the application state.

    Every command:
    - builds a new immutable AppState from the current one,
    - writes it through the StateRepo synchronously,
    - notifies subscribers with the new snapshot.

    Commands referencing unknown ids return MutationOutcome.NOT_FOUND and leave
    the state untouched. Malformed input (bad reorder, unknown fields, empty
    names) raises ValueError.

    Thread-safety:
    - commands are serialized through one re-entrant lock
    """

    def __init__(
        self,
        repo: StateRepo,
        *,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_id,
        debug_unique_ids: bool = False,
    ) -> None:
        self._repo = repo
        self._clock = clock
        self._new_id = id_factory
        self._debug_unique_ids = debug_unique_ids
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self._state = self._normalize(repo.load())
        logger.info("TaskStore ready lists=%d", len(self._state.lists))

    # ---- low-level helpers ----

    @staticmethod
    def _normalize(state: AppState) -> AppState:
        lists = list(state.lists)
        if not has_inbox(state):
            logger.info("State has no inbox; adding an empty one.")
            lists.insert(0, TaskList(id=INBOX_ID, name=INBOX_NAME, description=INBOX_DESCRIPTION))
        for i, task_list in enumerate(lists):
            if task_list.id == INBOX_ID and task_list.name == LEGACY_INBOX_NAME:
                logger.info("Migration: renamed legacy inbox list.")
                lists[i] = dataclasses.replace(task_list, name=INBOX_NAME)
        return dataclasses.replace(state, lists=tuple(lists))

    def _check_unique_ids(self, state: AppState) -> None:
        dup_lists = tree.find_duplicate_ids(x.id for x in state.lists)
        dup_problems = tree.find_duplicate_ids(
            pid for task_list in state.lists for pid in tree.collect_ids(task_list.problems)
        )
        if dup_lists or dup_problems:
            raise DuplicateIdError(f"duplicate ids lists={dup_lists} problems={dup_problems}")

    def _commit(self, new_state: AppState, action: str, target_id: str | None = None) -> MutationResult:
        if self._debug_unique_ids:
            self._check_unique_ids(new_state)

        self._state = new_state
        try:
            self._repo.save(new_state)
        finally:
            self._notify(new_state)
        logger.debug("%s applied target=%s", action, target_id)
        return MutationResult(MutationOutcome.APPLIED, new_state, target_id)

    def _not_found(self, action: str, **ids: str | None) -> MutationResult:
        logger.debug("%s: not found %s", action, ids)
        return MutationResult(MutationOutcome.NOT_FOUND, self._state, reason=f"{action}: not found {ids}")

    def _notify(self, state: AppState) -> None:
        for cb in list(self._subscribers):
            try:
                cb(state)
            except Exception:
                logger.exception("State subscriber failed: %r", cb)

    def _replace_list(self, task_list: TaskList) -> AppState:
        lists = tuple(task_list if x.id == task_list.id else x for x in self._state.lists)
        return dataclasses.replace(self._state, lists=lists)

    # ---- queries ----

    @property
    def state(self) -> AppState:
        return self._state

    def get_list(self, list_id: str) -> TaskList | None:
        return self._state.get_list(list_id)

    def find_problem(self, problem_id: str) -> tuple[TaskList, Problem] | None:
        """First list (in order) whose subtree holds `problem_id`."""
        for task_list in self._state.lists:
            p = tree.find_by_id(task_list.problems, problem_id)
            if p is not None:
                return task_list, p
        return None

    def get_problem(self, problem_id: str) -> Problem | None:
        found = self.find_problem(problem_id)
        return found[1] if found else None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ---- lists ----

    def add_list(self, name: str, emoji: str | None = None, description: str = "") -> MutationResult:
        if not name or not name.strip():
            raise ValueError("name is required")
        with self._lock:
            task_list = TaskList(
                id=self._new_id(),
                name=name.strip(),
                description=description or "",
                emoji=emoji or None,
            )
            new_state = dataclasses.replace(self._state, lists=(*self._state.lists, task_list))
            logger.info("List added id=%s name=%s", task_list.id, task_list.name)
            return self._commit(new_state, "add_list", task_list.id)

    def update_list(self, list_id: str, **fields: Any) -> MutationResult:
        unknown = set(fields) - LIST_PATCH_FIELDS
        if unknown:
            raise ValueError(f"list fields cannot be patched: {', '.join(sorted(unknown))}")
        if "name" in fields and not str(fields["name"]).strip():
            raise ValueError("name is required")
        with self._lock:
            task_list = self.get_list(list_id)
            if task_list is None:
                return self._not_found("update_list", list_id=list_id)
            new_state = self._replace_list(dataclasses.replace(task_list, **fields))
            return self._commit(new_state, "update_list", list_id)

    def delete_list(self, list_id: str) -> MutationResult:
        with self._lock:
            if list_id == INBOX_ID:
                logger.warning("Refusing to delete the inbox list.")
                return MutationResult(MutationOutcome.REJECTED, self._state, list_id, "inbox cannot be deleted")
            if self.get_list(list_id) is None:
                return self._not_found("delete_list", list_id=list_id)
            lists = tuple(x for x in self._state.lists if x.id != list_id)
            logger.info("List deleted id=%s", list_id)
            return self._commit(dataclasses.replace(self._state, lists=lists), "delete_list", list_id)

    def reorder_lists(self, new_order: Sequence[TaskList | str]) -> MutationResult:
        """
        Reorder the lists. Accepts lists or ids; must be a permutation of the
        current lists. The current list records are kept (only order changes).
        """
        ids = [x if isinstance(x, str) else x.id for x in new_order]
        with self._lock:
            tree.ensure_permutation([x.id for x in self._state.lists], ids)
            by_id = {x.id: x for x in self._state.lists}
            lists = tuple(by_id[i] for i in ids)
            return self._commit(dataclasses.replace(self._state, lists=lists), "reorder_lists")

    # ---- problems ----

    def add_problem(
        self,
        parent_id: str | None,
        list_id: str,
        *,
        name: str,
        priority: Priority | str = Priority.SOMEDAY,
        status: ProblemStatus | str = ProblemStatus.TO_SOLVE,
        due_date: date | str | None = None,
        estimated_duration_ms: int | None = None,
        notes: str = "",
    ) -> MutationResult:
        fields = _coerce_problem_fields(
            {
                "name": name,
                "priority": priority,
                "status": status,
                "due_date": due_date,
                "estimated_duration_ms": estimated_duration_ms,
                "notes": notes or "",
            }
        )
        fields["name"] = str(fields["name"]).strip()

        with self._lock:
            task_list = self.get_list(list_id)
            if task_list is None:
                return self._not_found("add_problem", list_id=list_id)

            problem = Problem(id=self._new_id(), **fields)
            roots, found = tree.insert_child(task_list.problems, parent_id, problem)
            if not found:
                return self._not_found("add_problem", list_id=list_id, parent_id=parent_id)

            logger.info(
                "Problem added id=%s list=%s parent=%s priority=%s",
                problem.id,
                list_id,
                parent_id,
                problem.priority.value,
            )
            new_state = self._replace_list(dataclasses.replace(task_list, problems=roots))
            return self._commit(new_state, "add_problem", problem.id)

    def update_problem(self, list_id: str, problem_id: str, **fields: Any) -> MutationResult:
        """
        Merge `fields` into the problem.

        Completion rules:
        - completed=True  -> status=solved, completed_at stamped on the false->true transition
        - completed=False -> status=to_solve, completed_at cleared
        - an explicit status in the same call wins
        - the new completion is applied to every descendant as well
        A resulting status other than to_solve (explicit or from completed=True)
        bumps every to_solve ancestor to solving.
        """
        patch = _coerce_problem_fields(fields)

        with self._lock:
            task_list = self.get_list(list_id)
            if task_list is None:
                return self._not_found("update_problem", list_id=list_id)

            ts = self._clock()

            def apply(node: Problem) -> Problem:
                values = dict(patch)
                if "completed" in values:
                    completed = values["completed"]
                    values.setdefault("status", ProblemStatus.SOLVED if completed else ProblemStatus.TO_SOLVE)
                    values.setdefault("completed_at_ms", _completed_at(node, completed, ts))
                    values["subproblems"] = _cascade_completion(node.subproblems, completed, ts)
                return dataclasses.replace(node, **values)

            roots, found = tree.replace_by_id(task_list.problems, problem_id, apply)
            if not found:
                return self._not_found("update_problem", list_id=list_id, problem_id=problem_id)

            status = patch.get("status")
            if status is None and "completed" in patch:
                status = ProblemStatus.SOLVED if patch["completed"] else ProblemStatus.TO_SOLVE
            if status is not None and status is not ProblemStatus.TO_SOLVE:
                path = tree.find_path(roots, problem_id) or []
                for ancestor in path[:-1]:
                    if ancestor.status is ProblemStatus.TO_SOLVE:
                        roots, _ = tree.replace_by_id(roots, ancestor.id, {"status": ProblemStatus.SOLVING})

            new_state = self._replace_list(dataclasses.replace(task_list, problems=roots))
            return self._commit(new_state, "update_problem", problem_id)

    def update_problem_anywhere(self, problem_id: str, **fields: Any) -> MutationResult:
        """update_problem without knowing the list (used by focus sessions)."""
        with self._lock:
            found = self.find_problem(problem_id)
            if found is None:
                return self._not_found("update_problem_anywhere", problem_id=problem_id)
            return self.update_problem(found[0].id, problem_id, **fields)

    def delete_problem(self, list_id: str, problem_id: str) -> MutationResult:
        with self._lock:
            task_list = self.get_list(list_id)
            if task_list is None:
                return self._not_found("delete_problem", list_id=list_id)
            roots, found = tree.delete_by_id(task_list.problems, problem_id)
            if not found:
                return self._not_found("delete_problem", list_id=list_id, problem_id=problem_id)
            logger.info("Problem deleted id=%s list=%s", problem_id, list_id)
            new_state = self._replace_list(dataclasses.replace(task_list, problems=roots))
            return self._commit(new_state, "delete_problem", problem_id)

    def move_problem_to_list(self, problem_id: str, from_list_id: str, to_list_id: str) -> MutationResult:
        """
        Move a problem (with its whole subtree) to the top level of another list.
        Nothing changes unless both lists and the problem exist.
        """
        with self._lock:
            source = self.get_list(from_list_id)
            if source is None or self.get_list(to_list_id) is None:
                return self._not_found("move_problem_to_list", from_list_id=from_list_id, to_list_id=to_list_id)

            remaining, moved = tree.take_by_id(source.problems, problem_id)
            if moved is None:
                return self._not_found("move_problem_to_list", problem_id=problem_id, from_list_id=from_list_id)

            state = self._replace_list(dataclasses.replace(source, problems=remaining))
            lists = tuple(
                dataclasses.replace(x, problems=(*x.problems, moved)) if x.id == to_list_id else x
                for x in state.lists
            )
            logger.info("Problem moved id=%s from=%s to=%s", problem_id, from_list_id, to_list_id)
            return self._commit(dataclasses.replace(state, lists=lists), "move_problem_to_list", problem_id)

    def reorder_problems(
        self,
        list_id: str,
        parent_problem_id: str | None,
        new_order: Sequence[Problem | str],
    ) -> MutationResult:
        """Reorder one level of children (list root when parent_problem_id is None)."""
        ids = [x if isinstance(x, str) else x.id for x in new_order]
        with self._lock:
            task_list = self.get_list(list_id)
            if task_list is None:
                return self._not_found("reorder_problems", list_id=list_id)
            roots, found = tree.reorder_children(task_list.problems, parent_problem_id, ids)
            if not found:
                return self._not_found("reorder_problems", list_id=list_id, parent_id=parent_problem_id)
            new_state = self._replace_list(dataclasses.replace(task_list, problems=roots))
            return self._commit(new_state, "reorder_problems", parent_problem_id)

    # ---- settings ----

    def update_settings(self, **fields: Any) -> MutationResult:
        unknown = set(fields) - SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        values = dict(fields)
        if "layout" in values:
            values["layout"] = Layout(values["layout"])
        if "default_view" in values:
            values["default_view"] = ViewName(values["default_view"])
        with self._lock:
            settings = dataclasses.replace(self._state.settings, **values)
            return self._commit(dataclasses.replace(self._state, settings=settings), "update_settings")
