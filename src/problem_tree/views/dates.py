# src/problem_tree/views/dates.py

"""
Calendar-date helpers shared by the views.

Due dates are plain calendar dates (no time, no timezone). They are parsed by
splitting into year/month/day components and always compared as `date`
objects against the local date of the render pass, never as strings or
instants.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_HOURS_RE = re.compile(r"(\d+)\s*h")
_MINUTES_RE = re.compile(r"(\d+)\s*m")


def parse_due_date(raw: str) -> date:
    """Parse "YYYY-MM-DD" into a date. Raises ValueError on anything else."""
    parts = (raw or "").strip().split("-")
    if len(parts) != 3:
        raise ValueError(f"Invalid due date: {raw!r}")
    try:
        year, month, day = (int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Invalid due date: {raw!r}") from None
    return date(year, month, day)


def format_iso(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def local_today(now: datetime | None = None) -> date:
    if now is None:
        now = datetime.now()
    return now.date()


def week_bounds(today: date) -> tuple[date, date]:
    """Monday..Sunday window containing `today` (on Sunday, Monday is 6 days back)."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def week_bounds_ms(today: date) -> tuple[int, int]:
    """Local-midnight Monday up to (excluding) the next Monday, in epoch ms."""
    monday, sunday = week_bounds(today)
    start = datetime(monday.year, monday.month, monday.day)
    end = datetime(sunday.year, sunday.month, sunday.day) + timedelta(days=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def short_date(d: date) -> str:
    return f"{MONTH_ABBR[d.month - 1]} {d.day}"


def format_due_date(due: date | None, today: date) -> str:
    """
    Human label for a due date relative to today:
    Today / Tomorrow / Yesterday, the weekday name up to six days ahead,
    otherwise "Mar 5".
    """
    if due is None:
        return ""
    diff_days = (due - today).days
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Tomorrow"
    if diff_days == -1:
        return "Yesterday"
    if 1 < diff_days < 7:
        return WEEKDAY_NAMES[due.weekday()]
    return short_date(due)


def format_date_heading(d: date) -> str:
    """Section heading used by the Upcoming view, e.g. "Wednesday, Mar 5"."""
    return f"{WEEKDAY_NAMES[d.weekday()]}, {short_date(d)}"


def format_duration_ms(ms: int, *, include_hours: bool = False) -> str:
    total_seconds = max(0, int(ms)) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if include_hours or hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def parse_duration_text(text: str) -> int | None:
    """
    Parse an estimate like "1h 30m", "45m" or a bare number of minutes.
    Returns milliseconds, or None when nothing positive was given.
    """
    val = (text or "").strip().lower()
    if not val:
        return None

    total_minutes = 0
    h = _HOURS_RE.search(val)
    if h:
        total_minutes += int(h.group(1)) * 60
    m = _MINUTES_RE.search(val)
    if m:
        total_minutes += int(m.group(1))
    if not h and not m:
        digits = re.match(r"\d+", val)
        if digits:
            total_minutes = int(digits.group(0))

    if total_minutes <= 0:
        return None
    return total_minutes * 60_000
