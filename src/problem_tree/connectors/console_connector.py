# src/problem_tree/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.context import AppContext

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def handle_line(ctx: AppContext, line: str) -> str | None:
    """
    Run one console line through the command registry under the context lock.

    Returns the reply, or None for an empty line. Plain text is added to the inbox.
    """
    line = line.strip()
    if not line:
        return None

    if not line.startswith("/"):
        line = f"/add {line}"

    try:
        with ctx.lock:
            return command_registry.handle(ctx, line, emit=_print_ts)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."


def run_console_loop(ctx: AppContext) -> None:
    logger.info("Console connector started (state=%s).", getattr(ctx.settings, "state_path", "?"))
    _print_ts("[CONSOLE] Type a problem to add it to the inbox. Use /help for commands. Use /exit to quit.\n")

    default_view = ctx.store.state.settings.default_view.value
    opening = {
        "today": "/today",
        "this_week": "/week",
        "upcoming": "/upcoming",
        "next_actions": "/next",
        "unfinished": "/unfinished",
        "inbox": "/show inbox",
        "lists": "/lists",
    }.get(default_view, "/today")
    reply = handle_line(ctx, opening)
    if reply:
        _print_ts(reply)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        reply = handle_line(ctx, user_input)
        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
