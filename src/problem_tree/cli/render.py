# src/problem_tree/cli/render.py

"""Plain-text rendering of derived views for the console."""

from __future__ import annotations

from collections.abc import Iterable

from ..core.models import Problem, ProblemStatus, TaskList
from ..views.dates import format_due_date, format_duration_ms
from ..views.derive import FlatTask, ListTree, TodaySections, TreeNode, UpcomingGroup, count_incomplete_subproblems

SHORT_ID = 8


def short_id(full_id: str) -> str:
    return full_id[:SHORT_ID]


def problem_line(p: Problem, today, *, dimmed: bool = False) -> str:
    box = "[x]" if p.completed else "[ ]"
    parts = [f"{box} {p.name}", f"({short_id(p.id)})"]
    if p.due_date is not None:
        parts.append(f"due {format_due_date(p.due_date, today)}")
    if p.status not in (ProblemStatus.TO_SOLVE, ProblemStatus.SOLVED):
        parts.append(p.status.value)
    if p.total_time_ms:
        parts.append(f"⏱ {format_duration_ms(p.total_time_ms, include_hours=True)}")
    open_children = count_incomplete_subproblems(p)
    if open_children:
        parts.append(f"+{open_children}")
    line = " ".join(parts)
    return f"·{line}" if dimmed else line


def flat_lines(tasks: Iterable[FlatTask], today) -> list[str]:
    lines = []
    for t in tasks:
        lines.append(f"  {problem_line(t.problem, today)}")
        lines.append(f"      {t.breadcrumb()}")
    return lines


def today_lines(sections: TodaySections, today) -> list[str]:
    if sections.is_empty:
        return ["Nothing for today."]
    lines: list[str] = []
    for title, tasks in (
        ("Overdue", sections.overdue),
        ("Due Today", sections.due_today),
        ("Do Today", sections.do_today),
    ):
        if tasks:
            lines.append(f"{title} ({len(tasks)})")
            lines.extend(flat_lines(tasks, today))
    return lines


def upcoming_lines(groups: list[UpcomingGroup], today) -> list[str]:
    if not groups:
        return ["Nothing upcoming."]
    lines: list[str] = []
    for g in groups:
        lines.append(g.heading)
        lines.extend(flat_lines(g.tasks, today))
    return lines


def _node_lines(nodes: Iterable[TreeNode], today, depth: int) -> list[str]:
    lines: list[str] = []
    for n in nodes:
        lines.append("  " * depth + problem_line(n.problem, today, dimmed=n.dimmed))
        lines.extend(_node_lines(n.children, today, depth + 1))
    return lines


def tree_lines(trees: list[ListTree], today, *, empty: str = "Nothing here.") -> list[str]:
    if not trees:
        return [empty]
    lines: list[str] = []
    for t in trees:
        lines.append(f"{list_title(t.task_list)} ({t.tally})")
        lines.extend(_node_lines(t.nodes, today, 1))
    return lines


def subtree_lines(problems: Iterable[Problem], today, depth: int = 1) -> list[str]:
    lines: list[str] = []
    for p in problems:
        lines.append("  " * depth + problem_line(p, today))
        lines.extend(subtree_lines(p.subproblems, today, depth + 1))
    return lines


def list_title(task_list: TaskList) -> str:
    return f"{task_list.emoji} {task_list.name}" if task_list.emoji else task_list.name
