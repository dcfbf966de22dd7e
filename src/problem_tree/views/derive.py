# src/problem_tree/views/derive.py

"""
View derivation: pure read-only projections of an AppState.

All functions take the snapshot plus a ViewContext built once per render pass,
so every view and badge computed in that pass agrees on "today" and on the
current week. Callers must re-derive on every pass instead of caching.

Counting and matching always walk the entire subtree: a completed ancestor
does not hide its incomplete descendants.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal

from ..core.models import INBOX_ID, AppState, Priority, Problem, ProblemStatus, TaskList
from .dates import format_date_heading, local_today, week_bounds, week_bounds_ms

Predicate = Callable[[Problem], bool]


@dataclass(frozen=True, slots=True)
class ViewContext:
    now: datetime
    today: date
    week_start: date
    week_end: date

    @classmethod
    def at(cls, now: datetime | None = None) -> ViewContext:
        if now is None:
            now = datetime.now()
        today = local_today(now)
        monday, sunday = week_bounds(today)
        return cls(now=now, today=today, week_start=monday, week_end=sunday)


# ---- predicates ----


def is_overdue(p: Problem, today: date) -> bool:
    return not p.completed and p.due_date is not None and p.due_date < today


def is_due_today(p: Problem, today: date) -> bool:
    return not p.completed and p.due_date == today


def is_do_today(p: Problem) -> bool:
    return not p.completed and p.priority is Priority.TODAY


def is_today(p: Problem, today: date) -> bool:
    """Belongs to at least one of the Today page sections."""
    return is_overdue(p, today) or is_due_today(p, today) or is_do_today(p)


def is_this_week(p: Problem, ctx: ViewContext) -> bool:
    if p.completed:
        return False
    if p.priority in (Priority.TODAY, Priority.THIS_WEEK):
        return True
    return p.due_date is not None and ctx.week_start <= p.due_date <= ctx.week_end


def is_upcoming(p: Problem, today: date) -> bool:
    # Strictly after today; today's items belong to the Today page.
    return not p.completed and p.due_date is not None and p.due_date > today


def is_next_action(p: Problem) -> bool:
    return not p.completed and not any(not c.completed for c in p.subproblems)


def is_unfinished(p: Problem) -> bool:
    return not p.completed and p.status in (ProblemStatus.SOLVING, ProblemStatus.BLOCKED)


# ---- counts ----


def count_matching(problems: Iterable[Problem], predicate: Predicate) -> int:
    count = 0
    for p in problems:
        if predicate(p):
            count += 1
        count += count_matching(p.subproblems, predicate)
    return count


def count_incomplete(problems: Iterable[Problem]) -> int:
    return count_matching(problems, lambda p: not p.completed)


def count_incomplete_subproblems(problem: Problem) -> int:
    """Badge next to a row: incomplete descendants, the row itself excluded."""
    return count_incomplete(problem.subproblems)


def list_count(task_list: TaskList) -> int:
    return count_incomplete(task_list.problems)


def inbox_count(state: AppState) -> int:
    inbox = state.get_list(INBOX_ID)
    return list_count(inbox) if inbox is not None else 0


def count_all(state: AppState, predicate: Predicate) -> int:
    return sum(count_matching(x.problems, predicate) for x in state.lists)


@dataclass(frozen=True, slots=True)
class BadgeCounts:
    inbox: int
    today: int
    this_week: int
    upcoming: int
    next_actions: int
    unfinished: int
    total: int


def badge_counts(state: AppState, ctx: ViewContext) -> BadgeCounts:
    """Navigation numbers, derived from the same predicates as the pages."""
    return BadgeCounts(
        inbox=inbox_count(state),
        today=count_all(state, lambda p: is_today(p, ctx.today)),
        this_week=count_all(state, lambda p: is_this_week(p, ctx)),
        upcoming=count_all(state, lambda p: is_upcoming(p, ctx.today)),
        next_actions=count_all(state, is_next_action),
        unfinished=count_all(state, is_unfinished),
        total=count_all(state, lambda p: not p.completed),
    )


# ---- flat views (breadcrumb paths) ----


@dataclass(frozen=True, slots=True)
class Crumb:
    id: str
    name: str
    kind: Literal["list", "problem"]


@dataclass(frozen=True, slots=True)
class FlatTask:
    problem: Problem
    list_id: str
    path: tuple[Crumb, ...]

    def breadcrumb(self, sep: str = " > ") -> str:
        return sep.join(c.name for c in self.path)


def _flatten(problems: Iterable[Problem], list_id: str, path: tuple[Crumb, ...], predicate: Predicate, out: list[FlatTask]) -> None:
    for p in problems:
        if predicate(p):
            out.append(FlatTask(problem=p, list_id=list_id, path=path))
        _flatten(p.subproblems, list_id, (*path, Crumb(p.id, p.name, "problem")), predicate, out)


def flatten_matching(lists: Iterable[TaskList], predicate: Predicate) -> list[FlatTask]:
    """Every matching problem in traversal order with its list > ancestors path."""
    out: list[FlatTask] = []
    for task_list in lists:
        _flatten(task_list.problems, task_list.id, (Crumb(task_list.id, task_list.name, "list"),), predicate, out)
    return out


@dataclass(frozen=True, slots=True)
class TodaySections:
    overdue: list[FlatTask]
    due_today: list[FlatTask]
    do_today: list[FlatTask]

    @property
    def is_empty(self) -> bool:
        return not (self.overdue or self.due_today or self.do_today)


def today_sections(state: AppState, ctx: ViewContext) -> TodaySections:
    """The three Today sections; a problem may show up in several of them."""
    return TodaySections(
        overdue=flatten_matching(state.lists, lambda p: is_overdue(p, ctx.today)),
        due_today=flatten_matching(state.lists, lambda p: is_due_today(p, ctx.today)),
        do_today=flatten_matching(state.lists, is_do_today),
    )


def this_week_tasks(state: AppState, ctx: ViewContext) -> list[FlatTask]:
    return flatten_matching(state.lists, lambda p: is_this_week(p, ctx))


@dataclass(frozen=True, slots=True)
class UpcomingGroup:
    day: date
    heading: str
    tasks: list[FlatTask]


def upcoming_groups(state: AppState, ctx: ViewContext) -> list[UpcomingGroup]:
    """Future-dated problems grouped per due date, earliest first."""
    grouped: dict[date, list[FlatTask]] = {}
    for task in flatten_matching(state.lists, lambda p: is_upcoming(p, ctx.today)):
        due = task.problem.due_date
        if due is not None:
            grouped.setdefault(due, []).append(task)
    return [UpcomingGroup(day=d, heading=format_date_heading(d), tasks=grouped[d]) for d in sorted(grouped)]


def solved_this_week(state: AppState, ctx: ViewContext) -> list[FlatTask]:
    """Problems completed inside the current Monday-Sunday window, most recent first."""
    start_ms, end_ms = week_bounds_ms(ctx.today)

    def solved_in_window(p: Problem) -> bool:
        return p.completed and p.completed_at_ms is not None and start_ms <= p.completed_at_ms < end_ms

    tasks = flatten_matching(state.lists, solved_in_window)
    tasks.sort(key=lambda t: t.problem.completed_at_ms or 0, reverse=True)
    return tasks


# ---- tree views ----


@dataclass(frozen=True, slots=True)
class TreeNode:
    """
    A row of a filtered tree. `dimmed` rows do not match themselves and are
    only shown to give a path to matching descendants.
    """

    problem: Problem
    dimmed: bool
    children: tuple[TreeNode, ...]


@dataclass(frozen=True, slots=True)
class ListTree:
    task_list: TaskList
    nodes: tuple[TreeNode, ...]
    tally: int


def _filter_nodes(problems: Iterable[Problem], predicate: Predicate) -> tuple[TreeNode, ...]:
    out: list[TreeNode] = []
    for p in problems:
        children = _filter_nodes(p.subproblems, predicate)
        matches = predicate(p)
        if matches or children:
            out.append(TreeNode(problem=p, dimmed=not matches, children=children))
    return tuple(out)


def _tally(nodes: Iterable[TreeNode]) -> int:
    return sum((0 if n.dimmed else 1) + _tally(n.children) for n in nodes)


def filter_tree(lists: Iterable[TaskList], predicate: Predicate) -> list[ListTree]:
    """
    Keep a node if it matches or any descendant matches. Lists without any
    match are dropped. `tally` counts self-matches only.
    """
    out: list[ListTree] = []
    for task_list in lists:
        nodes = _filter_nodes(task_list.problems, predicate)
        if nodes:
            out.append(ListTree(task_list=task_list, nodes=nodes, tally=_tally(nodes)))
    return out


def tree_tally(trees: Iterable[ListTree]) -> int:
    return sum(t.tally for t in trees)


def today_tree(state: AppState, ctx: ViewContext) -> list[ListTree]:
    return filter_tree(state.lists, lambda p: is_today(p, ctx.today))


def this_week_tree(state: AppState, ctx: ViewContext) -> list[ListTree]:
    return filter_tree(state.lists, lambda p: is_this_week(p, ctx))


def next_actions_tree(state: AppState) -> list[ListTree]:
    return filter_tree(state.lists, is_next_action)


def unfinished_tree(state: AppState) -> list[ListTree]:
    return filter_tree(state.lists, is_unfinished)
