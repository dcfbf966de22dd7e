# src/problem_tree/core/context.py

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..focus.ticker import TickerHandle
    from ..focus.timer import FocusSession
    from ..store.task_store import TaskStore


@dataclass
class AppContext:
    """
    Runtime wiring shared by connectors and commands.

    The task store owns the data; this only holds the collaborators around it
    plus the foreground focus session, if one is open.
    """

    settings: object
    store: TaskStore

    focus: FocusSession | None = None
    ticker: TickerHandle | None = None
    # Detaches the focus session from store notifications.
    focus_unsubscribe: Callable[[], None] | None = None

    # Serializes console commands against the background focus ticker.
    lock: threading.RLock = field(default_factory=threading.RLock)
