# src/problem_tree/focus/timer.py

"""
Focus session timer.

One FocusSession per problem, foreground only (nothing here is persisted
until a segment is committed). Two clocks run side by side:

- the countdown/stopwatch display, advanced by tick() once per second;
- the "total time" accumulator, which records a wall-clock anchor when it
  starts and commits a SessionRecord to the problem when it stops.

They start and stop together on toggle(), except that pomodoro starts
without accumulating and a finished countdown pauses the display while the
accumulator keeps running. Accumulation also needs the problem to be
unsolved; completion changes made elsewhere arrive through refresh().
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import StrEnum

from ..core.models import Problem, ProblemStatus, SessionRecord, now_ms
from ..core.ports import Clock, ProblemUpdater

logger = logging.getLogger(__name__)

TICK_MS = 1000
FIVE_MINUTES_MS = 5 * 60 * 1000
WORK_MS = 25 * 60 * 1000
BREAK_MS = 5 * 60 * 1000
LONG_BREAK_MS = 15 * 60 * 1000
LONG_BREAK_EVERY = 4
FINISHED_BEEPS = 3


class TimerMode(StrEnum):
    FIVE_MINUTES = "5min"
    POMODORO = "pomodoro"
    STOPWATCH = "stopwatch"


class TimerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class PomodoroPhase(StrEnum):
    WORK = "work"
    BREAK = "break"
    LONG_BREAK = "long_break"


PHASE_DURATION_MS = {
    PomodoroPhase.WORK: WORK_MS,
    PomodoroPhase.BREAK: BREAK_MS,
    PomodoroPhase.LONG_BREAK: LONG_BREAK_MS,
}


class FocusSessionError(RuntimeError):
    """Invalid use of a focus session (mode chosen twice, session closed, ...)."""


class FocusSession:
    def __init__(
        self,
        problem_id: str,
        updater: ProblemUpdater,
        *,
        clock: Clock = now_ms,
        on_finished: Callable[[int], None] | None = None,
    ) -> None:
        self.problem_id = problem_id
        self._updater = updater
        self._clock = clock
        self._on_finished = on_finished
        self._lock = threading.RLock()

        self.mode: TimerMode | None = None
        self.timer_state = TimerState.IDLE
        self.time_left_ms = 0
        self.stopwatch_ms = 0
        # total_running is what the user asked for; accumulating is whether an
        # anchor is open, which also requires the problem to be unsolved.
        self.total_running = False
        self.accumulating = False
        self.phase = PomodoroPhase.WORK
        self.cycles = 0
        self.closed = False

        self._segment_start_ms: int | None = None
        self._last_completed: bool | None = None

    # ---- mode selection (once per session) ----

    def _choose_mode(self, mode: TimerMode) -> None:
        if self.closed:
            raise FocusSessionError("focus session is closed")
        if self.mode is not None:
            raise FocusSessionError(f"mode already chosen: {self.mode.value}")
        self.mode = mode
        logger.info("Focus session problem=%s mode=%s", self.problem_id, mode.value)

    def start_five_minutes(self) -> None:
        with self._lock:
            self._choose_mode(TimerMode.FIVE_MINUTES)
            self.time_left_ms = FIVE_MINUTES_MS
            self.timer_state = TimerState.RUNNING
            self._set_total_running(True)

    def start_pomodoro(self) -> None:
        # Pomodoro waits for an explicit toggle() before anything runs.
        with self._lock:
            self._choose_mode(TimerMode.POMODORO)
            self.phase = PomodoroPhase.WORK
            self.cycles = 0
            self.time_left_ms = WORK_MS
            self.timer_state = TimerState.IDLE
            self._set_total_running(False)

    def start_stopwatch(self) -> None:
        with self._lock:
            self._choose_mode(TimerMode.STOPWATCH)
            self.stopwatch_ms = 0
            self.timer_state = TimerState.RUNNING
            self._set_total_running(True)

    def start(self, mode: TimerMode | str) -> None:
        starters = {
            TimerMode.FIVE_MINUTES: self.start_five_minutes,
            TimerMode.POMODORO: self.start_pomodoro,
            TimerMode.STOPWATCH: self.start_stopwatch,
        }
        starters[TimerMode(mode)]()

    # ---- user controls ----

    def toggle(self) -> TimerState:
        """Play/pause. Accumulation follows the new timer state."""
        with self._lock:
            self._require_mode()
            nxt = TimerState.PAUSED if self.timer_state is TimerState.RUNNING else TimerState.RUNNING
            self.timer_state = nxt
            self._set_total_running(nxt is TimerState.RUNNING)
            return nxt

    def reset(self) -> None:
        """Back to idle with a full countdown. Does not stop accumulation."""
        with self._lock:
            self._require_mode()
            self.timer_state = TimerState.IDLE
            if self.mode is TimerMode.FIVE_MINUTES:
                self.time_left_ms = FIVE_MINUTES_MS
            elif self.mode is TimerMode.STOPWATCH:
                self.stopwatch_ms = 0
            else:
                self.time_left_ms = PHASE_DURATION_MS[self.phase]

    def toggle_solved(self) -> bool:
        """
        Flip the problem's completion. Solving it commits the open segment
        first and stops both the countdown and the accumulator. Reopening it
        resumes accumulation when total time is still running.
        Returns the new completion value.
        """
        with self._lock:
            problem = self._updater.get_problem(self.problem_id)
            if problem is None:
                raise FocusSessionError(f"problem {self.problem_id} no longer exists")
            completed = not problem.completed
            if completed:
                if self.timer_state is TimerState.RUNNING:
                    self.timer_state = TimerState.PAUSED
                self._set_total_running(False)
            self._updater.update_problem_anywhere(
                self.problem_id,
                completed=completed,
                status=ProblemStatus.SOLVED if completed else ProblemStatus.TO_SOLVE,
            )
            updated = self._updater.get_problem(self.problem_id)
            if updated is not None:
                self._last_completed = updated.completed
                self._sync_accumulation(updated)
            return completed

    def exit(self) -> SessionRecord | None:
        """Close the session, committing any open segment first."""
        with self._lock:
            if self.closed:
                return None
            record = self._commit_segment()
            self.accumulating = False
            self.total_running = False
            self.closed = True
            logger.info("Focus session closed problem=%s", self.problem_id)
            return record

    # ---- 1-second tick ----

    def tick(self) -> None:
        with self._lock:
            if self.closed or self.timer_state is not TimerState.RUNNING:
                return
            if self.mode is TimerMode.STOPWATCH:
                self.stopwatch_ms += TICK_MS
                return
            if self.time_left_ms <= TICK_MS:
                self._finish_countdown()
                return
            self.time_left_ms -= TICK_MS

    def _finish_countdown(self) -> None:
        # The countdown pauses; the accumulator keeps running.
        self.timer_state = TimerState.PAUSED
        if self.mode is TimerMode.POMODORO:
            if self.phase is PomodoroPhase.WORK:
                self.cycles += 1
                self.phase = PomodoroPhase.LONG_BREAK if self.cycles % LONG_BREAK_EVERY == 0 else PomodoroPhase.BREAK
            else:
                self.phase = PomodoroPhase.WORK
            self.time_left_ms = PHASE_DURATION_MS[self.phase]
            logger.info("Pomodoro phase -> %s (cycles=%d)", self.phase.value, self.cycles)
        else:
            self.time_left_ms = 0

        if self._on_finished is not None:
            try:
                self._on_finished(FINISHED_BEEPS)
            except Exception:
                logger.exception("on_finished callback failed")

    # ---- accumulation / segment commit ----

    def refresh(self, _state: object = None) -> None:
        """
        Re-read the problem after a change made outside this session.

        Registered as a TaskStore subscriber while the session is open.
        A problem solved elsewhere pauses the countdown and commits the open
        segment; reopening it resumes accumulation if total time is running.
        Must not be called from the ticker thread.
        """
        with self._lock:
            if self.closed or self.mode is None:
                return
            problem = self._updater.get_problem(self.problem_id)
            if problem is None:
                if self.accumulating:
                    logger.warning("Problem %s vanished during focus", self.problem_id)
                    self.accumulating = False
                    self._segment_start_ms = None
                return
            newly_completed = problem.completed and self._last_completed is False
            self._last_completed = problem.completed
            if newly_completed and self.timer_state is TimerState.RUNNING:
                self.timer_state = TimerState.PAUSED
            self._sync_accumulation(problem)

    def _set_total_running(self, flag: bool) -> None:
        self.total_running = flag
        if not flag and not self.accumulating:
            return

        problem = self._updater.get_problem(self.problem_id)
        if problem is None:
            if flag:
                raise FocusSessionError(f"problem {self.problem_id} no longer exists")
            self.accumulating = False
            self._segment_start_ms = None
            return
        self._last_completed = problem.completed
        self._sync_accumulation(problem)

    def _sync_accumulation(self, problem: Problem) -> None:
        should = self.total_running and not problem.completed and not self.closed
        if should == self.accumulating:
            return
        if not should:
            self.accumulating = False
            self._commit_segment()
            return

        # Anchor before the status bump: the bump notifies subscribers, refresh() included.
        self.accumulating = True
        self._segment_start_ms = self._clock()
        if problem.status is ProblemStatus.TO_SOLVE:
            self._updater.update_problem_anywhere(self.problem_id, status=ProblemStatus.SOLVING)

    def _commit_segment(self) -> SessionRecord | None:
        start = self._segment_start_ms
        if start is None:
            return None
        self._segment_start_ms = None

        end = self._clock()
        duration = end - start
        if duration <= 0:
            return None

        problem = self._updater.get_problem(self.problem_id)
        if problem is None:
            logger.warning("Problem %s vanished; dropping %d ms segment", self.problem_id, duration)
            return None

        record = SessionRecord(start_ms=start, end_ms=end, duration_ms=duration)
        self._updater.update_problem_anywhere(
            self.problem_id,
            total_time_ms=(problem.total_time_ms or 0) + duration,
            sessions=(*problem.sessions, record),
        )
        logger.info("Session committed problem=%s duration_ms=%d", self.problem_id, duration)
        return record

    # ---- display ----

    def _require_mode(self) -> None:
        if self.mode is None:
            raise FocusSessionError("choose a timer mode first")
        if self.closed:
            raise FocusSessionError("focus session is closed")

    @property
    def open_segment_ms(self) -> int:
        start = self._segment_start_ms
        return 0 if start is None else max(0, self._clock() - start)

    @property
    def display_ms(self) -> int:
        return self.stopwatch_ms if self.mode is TimerMode.STOPWATCH else self.time_left_ms

    @property
    def total_display_ms(self) -> int:
        problem = self._updater.get_problem(self.problem_id)
        stored = (problem.total_time_ms or 0) if problem is not None else 0
        return stored + self.open_segment_ms

    @property
    def can_reset(self) -> bool:
        return not (
            self.timer_state is TimerState.RUNNING
            and self.mode is not TimerMode.STOPWATCH
            and self.time_left_ms > 0
        )
