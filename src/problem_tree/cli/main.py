# src/problem_tree/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads the task store, then runs the console REPL in the
main thread. A focus session (if one is open) keeps ticking in a background
thread and is committed on shutdown.
"""

from __future__ import annotations

import logging
import signal

from ..cli.bootstrap import close_focus, create_initial_context
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.context import AppContext
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(ctx: AppContext) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        with ctx.lock:
            close_focus(ctx)
    except Exception:
        logger.exception("Failed to close the focus session.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/problem-tree")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "problem-tree"))

    # IMPORTANT: reuse same settings object
    ctx = create_initial_context(settings=settings)

    def _handle_signal(signum, _frame) -> None:
        # Unblocks input() in the console loop.
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        logger.debug("SIGTERM handler not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(ctx)
        else:
            logger.info("Console disabled. Nothing to do; state is at %s.", settings.state_path)
    finally:
        _shutdown(ctx)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
