# src/problem_tree/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the JSON state file into the TaskStore,
- opens/closes the foreground focus session and its ticker thread.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.context import AppContext
from ..focus.ticker import start_ticker_in_background
from ..focus.timer import FocusSession, TimerMode
from ..store.state_file import JsonStateFile
from ..store.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.state_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_context(*, settings=None) -> AppContext:
    """
    Create AppContext from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        JsonStateFile(settings.state_path),
        debug_unique_ids=bool(getattr(settings, "debug_unique_ids", False)),
    )
    return AppContext(settings=settings, store=store)


def open_focus(ctx: AppContext, problem_id: str, mode: TimerMode | str, *, with_ticker: bool = True) -> FocusSession:
    """Start a focus session on `problem_id`, closing any previous one first."""
    close_focus(ctx)

    session = FocusSession(problem_id, ctx.store, on_finished=_announce_finished)
    session.start(mode)
    ctx.focus = session
    ctx.focus_unsubscribe = ctx.store.subscribe(session.refresh)
    if with_ticker:
        interval = float(getattr(ctx.settings, "tick_seconds", 1.0))
        ctx.ticker = start_ticker_in_background(session, interval_seconds=interval)
    return session


def close_focus(ctx: AppContext) -> None:
    """Detach the session from the store, commit any open segment and stop the ticker."""
    session, ctx.focus = ctx.focus, None
    ticker, ctx.ticker = ctx.ticker, None
    unsubscribe, ctx.focus_unsubscribe = ctx.focus_unsubscribe, None
    if unsubscribe is not None:
        unsubscribe()
    if session is not None:
        session.exit()
    if ticker is not None:
        ticker.stop()
        ticker.join(timeout=5.0)


def _announce_finished(count: int) -> None:
    # Terminal bell stands in for the beep.
    print("\a" * count, end="", flush=True)
    logger.info("Focus countdown finished.")
