"""
Focus subsystem.

Components:
- timer.py: FocusSession (5min / pomodoro / stopwatch, time accumulation)
- ticker.py: async 1-second ticker, optionally on a background thread
"""
