# src/problem_tree/core/serialization.py

"""
AppState <-> plain dict conversion.

The dict shape uses the camelCase keys of the browser-era snapshot so an
exported blob can be loaded as-is. Decoding is lenient: unknown keys are
ignored, bad enum values fall back to defaults, and malformed nodes are
skipped rather than failing the whole load.
"""

from __future__ import annotations

import logging
from typing import Any

from ..views.dates import format_iso, parse_due_date
from .models import (
    AppSettings,
    AppState,
    Layout,
    Priority,
    Problem,
    ProblemStatus,
    SessionRecord,
    TaskList,
    ViewName,
)

logger = logging.getLogger(__name__)


def _opt_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


# ---- encode ----


def session_to_dict(s: SessionRecord) -> dict[str, Any]:
    return {"startTime": s.start_ms, "endTime": s.end_ms, "duration": s.duration_ms}


def problem_to_dict(p: Problem) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": p.id,
        "name": p.name,
        "notes": p.notes,
        "dueDate": format_iso(p.due_date) if p.due_date else None,
        "priority": p.priority.value,
        "status": p.status.value,
        "subproblems": [problem_to_dict(c) for c in p.subproblems],
        "completed": p.completed,
    }
    if p.completed_at_ms is not None:
        out["completedAt"] = p.completed_at_ms
    if p.estimated_duration_ms is not None:
        out["estimatedDuration"] = p.estimated_duration_ms
    if p.total_time_ms is not None:
        out["totalTime"] = p.total_time_ms
    if p.sessions:
        out["sessions"] = [session_to_dict(s) for s in p.sessions]
    return out


def list_to_dict(task_list: TaskList) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": task_list.id,
        "name": task_list.name,
        "description": task_list.description,
        "problems": [problem_to_dict(p) for p in task_list.problems],
    }
    if task_list.emoji:
        out["emoji"] = task_list.emoji
    return out


def state_to_dict(state: AppState) -> dict[str, Any]:
    return {
        "lists": [list_to_dict(x) for x in state.lists],
        "settings": {
            "layout": state.settings.layout.value,
            "defaultView": state.settings.default_view.value,
        },
    }


# ---- decode ----


def session_from_dict(data: dict[str, Any]) -> SessionRecord | None:
    start = _opt_int(data.get("startTime"))
    end = _opt_int(data.get("endTime"))
    if start is None or end is None:
        return None
    duration = _opt_int(data.get("duration"))
    return SessionRecord(start_ms=start, end_ms=end, duration_ms=end - start if duration is None else duration)


def problem_from_dict(data: dict[str, Any]) -> Problem | None:
    pid = data.get("id")
    if not isinstance(pid, str) or not pid:
        logger.warning("Skipping problem without id: %r", data.get("name"))
        return None

    due_date = None
    raw_due = data.get("dueDate")
    if raw_due:
        try:
            due_date = parse_due_date(str(raw_due))
        except ValueError:
            logger.warning("Ignoring malformed dueDate=%r on problem %s", raw_due, pid)

    children: list[Problem] = []
    for raw_child in data.get("subproblems") or []:
        if isinstance(raw_child, dict):
            child = problem_from_dict(raw_child)
            if child is not None:
                children.append(child)

    sessions: list[SessionRecord] = []
    for raw_session in data.get("sessions") or []:
        if isinstance(raw_session, dict):
            rec = session_from_dict(raw_session)
            if rec is not None:
                sessions.append(rec)

    return Problem(
        id=pid,
        name=str(data.get("name") or ""),
        notes=str(data.get("notes") or ""),
        due_date=due_date,
        subproblems=tuple(children),
        completed=bool(data.get("completed", False)),
        status=ProblemStatus.from_raw(data.get("status")),
        priority=Priority.from_raw(data.get("priority")),
        estimated_duration_ms=_opt_int(data.get("estimatedDuration")),
        total_time_ms=_opt_int(data.get("totalTime")),
        sessions=tuple(sessions),
        completed_at_ms=_opt_int(data.get("completedAt")),
    )


def list_from_dict(data: dict[str, Any]) -> TaskList | None:
    lid = data.get("id")
    if not isinstance(lid, str) or not lid:
        return None

    problems: list[Problem] = []
    for raw in data.get("problems") or []:
        if isinstance(raw, dict):
            p = problem_from_dict(raw)
            if p is not None:
                problems.append(p)

    emoji = data.get("emoji")
    return TaskList(
        id=lid,
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        emoji=str(emoji) if emoji else None,
        problems=tuple(problems),
    )


def state_from_dict(data: dict[str, Any]) -> AppState:
    if not isinstance(data, dict):
        raise ValueError("state snapshot must be a JSON object")
    raw_lists = data.get("lists")
    if not isinstance(raw_lists, list):
        raise ValueError("state snapshot has no 'lists' array")

    lists: list[TaskList] = []
    for raw in raw_lists:
        if isinstance(raw, dict):
            task_list = list_from_dict(raw)
            if task_list is not None:
                lists.append(task_list)

    raw_settings = data.get("settings")
    if not isinstance(raw_settings, dict):
        raw_settings = {}
    settings = AppSettings(
        layout=Layout.from_raw(raw_settings.get("layout")),
        default_view=ViewName.from_raw(raw_settings.get("defaultView")),
    )
    return AppState(lists=tuple(lists), settings=settings)
