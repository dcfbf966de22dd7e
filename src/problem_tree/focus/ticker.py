# src/problem_tree/focus/ticker.py

"""
Fixed-rate ticker for focus sessions.

A small async loop that calls session.tick() once per interval until the
session is closed or the coroutine is cancelled. The console runs it on its
own event loop in a daemon thread, since input() blocks the main thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass

from .timer import FocusSession

logger = logging.getLogger(__name__)


async def run_focus_ticker(session: FocusSession, *, interval_seconds: float = 1.0) -> None:
    """
    Every interval_seconds:
    - advance the session's countdown/stopwatch by one tick
    - stop once the session has been closed

    To stop early, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    logger.debug("Focus ticker started problem=%s interval=%.2fs", session.problem_id, sleep_s)

    while not session.closed:
        await asyncio.sleep(sleep_s)
        try:
            session.tick()
        except Exception:
            logger.exception("focus tick failed problem=%s", session.problem_id)

    logger.debug("Focus ticker finished problem=%s", session.problem_id)


@dataclass(slots=True)
class TickerHandle:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    task: asyncio.Task[None]

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            # Loop already closed: the ticker has finished on its own.
            logger.debug("Ticker loop already closed.")

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_ticker_in_background(session: FocusSession, *, interval_seconds: float = 1.0) -> TickerHandle:
    """Run run_focus_ticker on a private event loop in a daemon thread."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(run_focus_ticker(session, interval_seconds=interval_seconds))
        holder["loop"] = loop
        holder["task"] = task
        ready.set()
        try:
            loop.run_until_complete(task)
        except asyncio.CancelledError:
            logger.debug("Focus ticker cancelled problem=%s", session.problem_id)
        finally:
            loop.close()

    thread = threading.Thread(target=runner, name=f"focus-ticker-{session.problem_id[:8]}", daemon=True)
    thread.start()
    ready.wait()

    return TickerHandle(
        thread=thread,
        loop=holder["loop"],  # type: ignore[arg-type]
        task=holder["task"],  # type: ignore[arg-type]
    )
