# src/problem_tree/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.context import AppContext
from ..core.models import Layout, Priority, Problem, ProblemStatus, TaskList, ViewName
from ..focus.timer import FocusSessionError, TimerMode, TimerState
from ..store import tree
from ..store.state_file import PersistenceError
from ..store.task_store import MutationResult
from ..views import derive
from ..views.dates import format_duration_ms, parse_duration_text, parse_due_date
from . import render
from .bootstrap import close_focus, open_focus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppContext, list[str]], str]
CommandHandler3 = Callable[[AppContext, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

PRIORITY_ALIASES = {
    "today": Priority.TODAY,
    "week": Priority.THIS_WEEK,
    "this_week": Priority.THIS_WEEK,
    "later": Priority.LATER,
    "recurring": Priority.RECURRING,
    "someday": Priority.SOMEDAY,
}


class CommandError(Exception):
    """User-facing command failure; the message is shown as the reply."""


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, ctx: AppContext, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                return cast(CommandHandler3, handler)(ctx, args, emit)
            return cast(CommandHandler2, handler)(ctx, args)
        except CommandError as e:
            return str(e)
        except (ValueError, FocusSessionError) as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Error: {e}"
        except PersistenceError as e:
            logger.error("Command /%s applied but not saved: %s", name, e)
            return f"Changed, but not saved: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _view_ctx() -> derive.ViewContext:
    return derive.ViewContext.at()


def _resolve_list(ctx: AppContext, token: str) -> TaskList:
    """
    By id, then by name (case-insensitive), then by id prefix.
    In single-word slots `_` stands for a space: +My_Work names "My Work".
    """
    lists = ctx.store.state.lists
    for x in lists:
        if x.id == token:
            return x
    wanted = {token.lower(), token.replace("_", " ").lower()}
    by_name = [x for x in lists if x.name.lower() in wanted]
    if len(by_name) == 1:
        return by_name[0]
    by_prefix = [x for x in lists if x.id.startswith(token)]
    if len(by_prefix) == 1:
        return by_prefix[0]
    if len(by_prefix) > 1 or len(by_name) > 1:
        raise CommandError(f"Ambiguous list: {token}")
    raise CommandError(f"No list matches: {token}")


def _resolve_problem(ctx: AppContext, token: str) -> tuple[TaskList, Problem]:
    matches: list[tuple[TaskList, Problem]] = []
    for x in ctx.store.state.lists:
        for p in tree.iter_problems(x.problems):
            if p.id == token:
                return x, p
            if p.id.startswith(token):
                matches.append((x, p))
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise CommandError(f"Ambiguous problem id: {token}")
    raise CommandError(f"No problem matches: {token}")


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise CommandError(f"Usage: {usage}")


def _reply(result: MutationResult, success: str) -> str:
    if result.ok:
        return success
    if result.reason:
        return f"Nothing changed ({result.outcome.value}): {result.reason}"
    return f"Nothing changed ({result.outcome.value})."


# ---- lists ----


def cmd_help(ctx: AppContext, args: list[str]) -> str:
    return registry.build_help()


def cmd_lists(ctx: AppContext, args: list[str]) -> str:
    lines = ["Lists:"]
    for x in ctx.store.state.lists:
        lines.append(f"  {render.list_title(x)} ({render.short_id(x.id)}) - {derive.list_count(x)} open")
    return "\n".join(lines)


def cmd_newlist(ctx: AppContext, args: list[str]) -> str:
    """/newlist <name...>"""
    _need(args, 1, "/newlist <name>")
    result = ctx.store.add_list(" ".join(args))
    return _reply(result, f"List created ({render.short_id(result.target_id or '')}).")


def cmd_renamelist(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/renamelist <list> <new name>")
    task_list = _resolve_list(ctx, args[0])
    return _reply(ctx.store.update_list(task_list.id, name=" ".join(args[1:])), "List renamed.")


def cmd_rmlist(ctx: AppContext, args: list[str]) -> str:
    _need(args, 1, "/rmlist <list>")
    task_list = _resolve_list(ctx, " ".join(args))
    return _reply(ctx.store.delete_list(task_list.id), f"Deleted list {task_list.name}.")


def cmd_movelist(ctx: AppContext, args: list[str]) -> str:
    """/movelist <list> <position> (1-based)"""
    _need(args, 2, "/movelist <list> <position>")
    task_list = _resolve_list(ctx, " ".join(args[:-1]))
    try:
        pos = int(args[-1]) - 1
    except ValueError:
        raise CommandError("Position must be a number.") from None
    ids = [x.id for x in ctx.store.state.lists if x.id != task_list.id]
    ids.insert(max(0, min(pos, len(ids))), task_list.id)
    return _reply(ctx.store.reorder_lists(ids), "Lists reordered.")


def cmd_show(ctx: AppContext, args: list[str]) -> str:
    """/show [list|problem] - tree of a list (inbox by default) or a problem."""
    vc = _view_ctx()
    token = " ".join(args) if args else "inbox"
    try:
        task_list = _resolve_list(ctx, token)
    except CommandError:
        task_list, problem = _resolve_problem(ctx, token)
        path = tree.find_path(task_list.problems, problem.id) or [problem]
        crumbs = " > ".join([task_list.name, *(p.name for p in path)])
        lines = [crumbs, render.problem_line(problem, vc.today)]
        if problem.notes:
            lines.append(f"  notes: {problem.notes}")
        lines.extend(render.subtree_lines(problem.subproblems, vc.today))
        return "\n".join(lines)

    lines = [f"{render.list_title(task_list)} - {derive.list_count(task_list)} open"]
    if task_list.description:
        lines.append(f"  {task_list.description}")
    lines.extend(render.subtree_lines(task_list.problems, vc.today) or ["  (empty)"])
    return "\n".join(lines)


# ---- problems ----


def cmd_add(ctx: AppContext, args: list[str]) -> str:
    """
    /add <name...> [+list-or-parent] [!priority] [@YYYY-MM-DD] [~estimate]

    Without a + target the problem lands in the inbox.
    """
    _need(args, 1, "/add <name> [+target] [!priority] [@date] [~1h30m]")
    name_parts: list[str] = []
    target: str | None = None
    priority = Priority.SOMEDAY
    due = None
    estimate = None

    for tok in args:
        if tok.startswith("+") and len(tok) > 1:
            target = tok[1:]
        elif tok.startswith("!") and len(tok) > 1:
            key = tok[1:].lower()
            if key not in PRIORITY_ALIASES:
                raise CommandError(f"Unknown priority: {key}")
            priority = PRIORITY_ALIASES[key]
        elif tok.startswith("@") and len(tok) > 1:
            due = parse_due_date(tok[1:])
        elif tok.startswith("~") and len(tok) > 1:
            estimate = parse_duration_text(tok[1:])
        else:
            name_parts.append(tok)

    if not name_parts:
        raise CommandError("A problem needs a name.")

    list_id, parent_id = "inbox", None
    if target is not None:
        try:
            list_id = _resolve_list(ctx, target).id
        except CommandError:
            owner, parent = _resolve_problem(ctx, target)
            list_id, parent_id = owner.id, parent.id

    result = ctx.store.add_problem(
        parent_id,
        list_id,
        name=" ".join(name_parts),
        priority=priority,
        due_date=due,
        estimated_duration_ms=estimate,
    )
    return _reply(result, f"Added ({render.short_id(result.target_id or '')}).")


def _set_completed(ctx: AppContext, args: list[str], completed: bool) -> str:
    _need(args, 1, "/done <problem>" if completed else "/undo <problem>")
    task_list, problem = _resolve_problem(ctx, args[0])
    status = ProblemStatus.SOLVED if completed else ProblemStatus.TO_SOLVE
    result = ctx.store.update_problem(task_list.id, problem.id, completed=completed, status=status)
    return _reply(result, "Problem solved!" if completed else "Problem reopened.")


def cmd_done(ctx: AppContext, args: list[str]) -> str:
    return _set_completed(ctx, args, True)


def cmd_undo(ctx: AppContext, args: list[str]) -> str:
    return _set_completed(ctx, args, False)


def cmd_status(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/status <problem> <to_solve|solving|blocked|ongoing|solved>")
    task_list, problem = _resolve_problem(ctx, args[0])
    status = ProblemStatus(args[1].lower())
    return _reply(ctx.store.update_problem(task_list.id, problem.id, status=status), f"Status -> {status.value}.")


def cmd_priority(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/priority <problem> <today|week|later|recurring|someday>")
    task_list, problem = _resolve_problem(ctx, args[0])
    key = args[1].lower()
    if key not in PRIORITY_ALIASES:
        raise CommandError(f"Unknown priority: {key}")
    priority = PRIORITY_ALIASES[key]
    return _reply(ctx.store.update_problem(task_list.id, problem.id, priority=priority), f"Priority -> {priority.value}.")


def cmd_due(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/due <problem> <YYYY-MM-DD|none>")
    task_list, problem = _resolve_problem(ctx, args[0])
    due = None if args[1].lower() == "none" else parse_due_date(args[1])
    return _reply(ctx.store.update_problem(task_list.id, problem.id, due_date=due), "Due date updated.")


def cmd_rename(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/rename <problem> <new name>")
    task_list, problem = _resolve_problem(ctx, args[0])
    return _reply(ctx.store.update_problem(task_list.id, problem.id, name=" ".join(args[1:])), "Renamed.")


def cmd_note(ctx: AppContext, args: list[str]) -> str:
    _need(args, 1, "/note <problem> [text...]")
    task_list, problem = _resolve_problem(ctx, args[0])
    return _reply(ctx.store.update_problem(task_list.id, problem.id, notes=" ".join(args[1:])), "Notes saved.")


def cmd_rm(ctx: AppContext, args: list[str]) -> str:
    _need(args, 1, "/rm <problem>")
    task_list, problem = _resolve_problem(ctx, args[0])
    return _reply(ctx.store.delete_problem(task_list.id, problem.id), f"Deleted {problem.name}.")


def cmd_mv(ctx: AppContext, args: list[str]) -> str:
    _need(args, 2, "/mv <problem> <list>")
    task_list, problem = _resolve_problem(ctx, args[0])
    dest = _resolve_list(ctx, " ".join(args[1:]))
    return _reply(ctx.store.move_problem_to_list(problem.id, task_list.id, dest.id), f"Moved to {dest.name}.")


def cmd_up(ctx: AppContext, args: list[str]) -> str:
    """/up <problem> - move one position up among its siblings."""
    _need(args, 1, "/up <problem>")
    task_list, problem = _resolve_problem(ctx, args[0])
    path = tree.find_path(task_list.problems, problem.id) or [problem]
    parent = path[-2] if len(path) > 1 else None
    siblings = [p.id for p in (parent.subproblems if parent else task_list.problems)]
    i = siblings.index(problem.id)
    if i == 0:
        return "Already first."
    siblings[i - 1], siblings[i] = siblings[i], siblings[i - 1]
    return _reply(ctx.store.reorder_problems(task_list.id, parent.id if parent else None, siblings), "Moved up.")


# ---- views ----


def cmd_today(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    return "\n".join(render.today_lines(derive.today_sections(ctx.store.state, vc), vc.today))


def cmd_week(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    tasks = derive.this_week_tasks(ctx.store.state, vc)
    if not tasks:
        return "Nothing planned this week."
    return "\n".join([f"This Week ({len(tasks)})", *render.flat_lines(tasks, vc.today)])


def cmd_upcoming(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    return "\n".join(render.upcoming_lines(derive.upcoming_groups(ctx.store.state, vc), vc.today))


def cmd_next(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    trees = derive.next_actions_tree(ctx.store.state)
    return "\n".join(render.tree_lines(trees, vc.today, empty="No next actions."))


def cmd_unfinished(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    trees = derive.unfinished_tree(ctx.store.state)
    return "\n".join(render.tree_lines(trees, vc.today, empty="Nothing in progress or blocked."))


def cmd_solved(ctx: AppContext, args: list[str]) -> str:
    vc = _view_ctx()
    tasks = derive.solved_this_week(ctx.store.state, vc)
    if not tasks:
        return "Nothing solved this week yet."
    return "\n".join([f"Solved this week ({len(tasks)})", *render.flat_lines(tasks, vc.today)])


def cmd_counts(ctx: AppContext, args: list[str]) -> str:
    c = derive.badge_counts(ctx.store.state, _view_ctx())
    return (
        "Counts:\n"
        f"  Inbox: {c.inbox}\n"
        f"  Today: {c.today}\n"
        f"  This Week: {c.this_week}\n"
        f"  Upcoming: {c.upcoming}\n"
        f"  Next Actions: {c.next_actions}\n"
        f"  Unfinished: {c.unfinished}\n"
        f"  Total open: {c.total}"
    )


# ---- settings ----


def cmd_layout(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return f"Layout: {ctx.store.state.settings.layout.value}"
    layout = Layout(args[0].lower())
    return _reply(ctx.store.update_settings(layout=layout), f"Layout -> {layout.value}.")


def cmd_view(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return f"Default view: {ctx.store.state.settings.default_view.value}"
    view = ViewName(args[0].lower())
    return _reply(ctx.store.update_settings(default_view=view), f"Default view -> {view.value}.")


# ---- focus ----


def cmd_focus(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /focus <problem> <5min|pomodoro|stopwatch>  -> start a session
    /focus toggle | reset | solve | show | exit
    """
    if not args:
        return "Usage: /focus <problem> <5min|pomodoro|stopwatch> | /focus toggle|reset|solve|show|exit"

    sub = args[0].lower()
    session = ctx.focus

    if sub in ("toggle", "reset", "solve", "show", "exit"):
        if session is None:
            return "No focus session. Start one with /focus <problem> <mode>."
        if sub == "exit":
            close_focus(ctx)
            return "Focus session closed."
        if sub == "toggle":
            state = session.toggle()
            return "Running." if state is TimerState.RUNNING else "Paused."
        if sub == "reset":
            if not session.can_reset:
                return "Pause the countdown before resetting."
            session.reset()
            return "Timer reset."
        if sub == "solve":
            completed = session.toggle_solved()
            return "Problem solved!" if completed else "Problem reopened."
        phase = f" phase={session.phase.value} cycles={session.cycles}" if session.mode is TimerMode.POMODORO else ""
        return (
            f"Focus {session.mode.value if session.mode else '-'} {session.timer_state.value}{phase}\n"
            f"  timer: {format_duration_ms(session.display_ms)}\n"
            f"  total: {format_duration_ms(session.total_display_ms, include_hours=True)}"
        )

    _need(args, 2, "/focus <problem> <5min|pomodoro|stopwatch>")
    _, problem = _resolve_problem(ctx, args[0])
    mode = TimerMode(args[1].lower())
    if emit:
        emit(f"[FOCUS] {problem.name}")
    open_focus(ctx, problem.id, mode)
    hint = " Use /focus toggle to start." if mode is TimerMode.POMODORO else ""
    return f"Focus session started ({mode.value}).{hint}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("lists", cmd_lists, help_text="Show lists with open counts.")
registry.register("newlist", cmd_newlist, help_text="Create a list: /newlist <name>.")
registry.register("renamelist", cmd_renamelist, help_text="Rename a list: /renamelist <list> <name> (multi-word list: My_List).")
registry.register("rmlist", cmd_rmlist, help_text="Delete a list and everything in it.")
registry.register("movelist", cmd_movelist, help_text="Reorder lists: /movelist <list> <position>.")
registry.register("show", cmd_show, help_text="Show a list or problem tree: /show [list|problem].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add: /add <name> [+list|+parent] [!priority] [@YYYY-MM-DD] [~1h30m]; +My_List for multi-word lists.")
registry.register("done", cmd_done, help_text="Mark a problem solved (with its subproblems).")
registry.register("undo", cmd_undo, help_text="Reopen a solved problem.")
registry.register("status", cmd_status, help_text="Set status: /status <problem> <status>.")
registry.register("priority", cmd_priority, help_text="Set priority: /priority <problem> <priority>.")
registry.register("due", cmd_due, help_text="Set due date: /due <problem> <YYYY-MM-DD|none>.")
registry.register("rename", cmd_rename, help_text="Rename a problem.")
registry.register("note", cmd_note, help_text="Replace a problem's notes.")
registry.register("rm", cmd_rm, help_text="Delete a problem and its subproblems.")
registry.register("mv", cmd_mv, help_text="Move a problem to the top level of another list: /mv <problem> <list>.")
registry.register("up", cmd_up, help_text="Move a problem up among its siblings.")
registry.register("today", cmd_today, help_text="Overdue / Due Today / Do Today.")
registry.register("week", cmd_week, help_text="This week's problems.")
registry.register("upcoming", cmd_upcoming, help_text="Future due dates, grouped by day.")
registry.register("next", cmd_next, help_text="Next actions (no open subproblems).")
registry.register("unfinished", cmd_unfinished, help_text="Problems being solved or blocked.")
registry.register("solved", cmd_solved, help_text="Problems solved this week.")
registry.register("counts", cmd_counts, help_text="Badge counts for every view.")
registry.register("layout", cmd_layout, help_text="Show/set layout: single-column | two-columns.")
registry.register("view", cmd_view, help_text="Show/set the default view.")
registry.register("focus", cmd_focus, help_text="Focus timer: /focus <problem> <mode> | toggle | reset | solve | show | exit.")
