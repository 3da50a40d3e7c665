# src/taskboard/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date

from ..core.errors import TaskBoardError
from ..core.state import AppState
from ..tasks.board import TaskDraft, TaskFilter
from ..tasks.formatting import format_estimated, format_hours, is_over_estimate
from ..tasks.models import Priority, Status, Task

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

MANAGER_ONLY = "This command needs the task management capability."


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /board, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
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
            return await handler(state, args, emit)
        except TaskBoardError as e:
            return str(e)
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- lookup helpers ----


def _resolve_task(state: AppState, token: str, *, visible_only: bool = False) -> Task:
    """Accept a full id or a unique id prefix."""
    if visible_only:
        view = state.board.visible_tasks_for(state.auth.current_user(), can_manage=state.is_manager)
        pool = [*view.all_tasks(), *view.orphans]
    else:
        pool = state.board.all_tasks()
    exact = next((t for t in pool if t.id == token), None)
    if exact is not None:
        return exact
    matches = [t for t in pool if t.id.startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise ValueError(f"no task matches {token!r}")
    raise ValueError(f"{token!r} is ambiguous ({len(matches)} tasks)")


def _resolve_status(state: AppState, text: str) -> Status:
    """Accept a status id or its name (case-insensitive)."""
    st = state.registry.get(text)
    if st is not None:
        return st
    key = text.strip().lower()
    for s in state.registry.statuses:
        if s.key == key:
            return s
    raise ValueError(f"unknown status {text!r}")


# ---- rendering ----


def render_task(state: AppState, task: Task) -> str:
    parts = [f"[{task.id[:8]}] {task.title}", f"({task.priority.value})"]
    parts.append("@Unassigned" if task.is_unassigned else f"@{task.assignee_name or task.assignee_id}")

    est = format_estimated(task)
    if est:
        parts.append(f"est {est}")

    actual = state.tracker.actual_hours(task.id)
    shown = format_hours(actual.total_hours)
    if shown:
        flag = " !over" if is_over_estimate(task, actual.total_hours) else ""
        sessions = "session" if actual.session_count == 1 else "sessions"
        parts.append(f"actual {shown} ({actual.session_count} {sessions}){flag}")

    if state.tracker.open_entries(task.id):
        parts.append("*tracking*")
    if task.quality_rating:
        parts.append(f"rating {task.quality_rating}/5")
    if task.due_date:
        parts.append(f"due {task.due_date.isoformat()}")
    return " ".join(parts)


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = state.auth.current_user()
    backend = getattr(state.settings, "store_backend", "?")
    return (
        "Session:\n"
        f"  User: {user.name} ({user.id})\n"
        f"  Manager: {'yes' if state.is_manager else 'no'}\n"
        f"  Backend: {backend}"
    )


async def cmd_board(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /board            -> visible tasks grouped by status
    /board <text>     -> same, filtered by title/description
    """
    user = state.auth.current_user()
    view = state.board.visible_tasks_for(
        user,
        can_manage=state.is_manager,
        filters=TaskFilter(search=" ".join(args)) if args else None,
    )
    if not view.columns:
        return "No statuses configured. Managers can add one with /statuses add <name>."

    lines: list[str] = []
    for col in view.columns:
        lines.append(f"== {col.status.name} ({len(col.tasks)}) ==")
        for t in col.tasks:
            lines.append("  " + render_task(state, t))
    if view.orphans:
        lines.append(f"({len(view.orphans)} task(s) hidden: their status no longer exists; see /orphans)")
    return "\n".join(lines)


async def cmd_orphans(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    view = state.board.visible_tasks_for(state.auth.current_user(), can_manage=state.is_manager)
    if not view.orphans:
        return "No orphaned tasks."
    lines = ["Tasks whose status was deleted:"]
    for t in view.orphans:
        lines.append(f"  {render_task(state, t)} [status: {t.status or t.status_id or '-'}]")
    return "\n".join(lines)


async def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /move <task> <status>"
    task = _resolve_task(state, args[0])
    status = _resolve_status(state, " ".join(args[1:]))
    changed = await state.board.move_status(task.id, status.id, state.auth.current_user().id)
    if not changed:
        return f"Task is already in {status.name}."
    return f"Moved '{task.title}' to {status.name}."


async def cmd_assign(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.is_manager:
        return MANAGER_ONLY
    if len(args) < 2:
        return "Usage: /assign <task> <user_id> [display name]"
    task = _resolve_task(state, args[0])
    name = " ".join(args[2:])
    await state.board.reassign(task.id, args[1], name)
    return f"Assigned '{task.title}' to {name or args[1]}."


async def cmd_rate(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2 or not args[1].isdigit():
        return "Usage: /rate <task> <1-5>"
    task = _resolve_task(state, args[0], visible_only=True)
    await state.board.rate(task.id, int(args[1]))
    return f"Rated '{task.title}' {args[1]}/5."


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.is_manager:
        return MANAGER_ONLY
    if len(args) != 1:
        return "Usage: /delete <task>"
    task = _resolve_task(state, args[0])
    await state.board.remove(task.id)
    return f"Deleted '{task.title}'."


async def cmd_new(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /new <title...> [!low|!medium|!high] [~<hours>h] [~<minutes>m]
    """
    if not state.is_manager:
        return MANAGER_ONLY

    words: list[str] = []
    draft = TaskDraft(title="")
    for a in args:
        if a.startswith("!") and a[1:].lower() in {p.value for p in Priority}:
            draft.priority = Priority(a[1:].lower())
        elif a.startswith("~") and a.endswith("h") and a[1:-1].isdigit():
            draft.estimated_hours = int(a[1:-1])
        elif a.startswith("~") and a.endswith("m") and a[1:-1].isdigit():
            draft.estimated_minutes = int(a[1:-1])
        else:
            words.append(a)
    draft.title = " ".join(words)
    if not draft.title:
        return "Usage: /new <title...> [!low|!medium|!high] [~2h] [~30m]"

    task = await state.board.create_task(draft, state.auth.current_user())
    return f"Created [{task.id[:8]}] {task.title}."


async def cmd_time(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /time <task>"
    task = _resolve_task(state, args[0])
    actual = state.tracker.actual_hours(task.id)
    lines = [f"Time for '{task.title}':"]
    lines.append(f"  Estimated: {format_estimated(task) or '-'}")
    lines.append(f"  Actual: {format_hours(actual.total_hours) or '-'} over {actual.session_count} session(s)")
    if state.tracker.open_entries(task.id):
        live = state.tracker.tracked_hours(task.id)
        lines.append(f"  Tracking now (incl. current session: {format_hours(live) or '0s'})")
    if is_over_estimate(task, actual.total_hours):
        lines.append("  Over estimate")
    return "\n".join(lines)


async def cmd_log(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /log <task> <hours> [YYYY-MM-DD]
    """
    if len(args) not in (2, 3):
        return "Usage: /log <task> <hours> [YYYY-MM-DD]"
    task = _resolve_task(state, args[0])
    hours = float(args[1])
    on_date = date.fromisoformat(args[2]) if len(args) == 3 else date.today()
    entry = await state.tracker.log_manual(task.id, state.auth.current_user().id, on_date, hours)
    return f"Logged {format_hours(entry.duration)} on '{task.title}' for {on_date.isoformat()}."


async def cmd_statuses(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /statuses                      -> list
    /statuses add <name> [#color]
    /statuses rename <status> <new name>
    /statuses del <status>
    /statuses up|down <status>
    """
    if not args:
        if not state.registry.statuses:
            return "No statuses configured."
        lines = ["Statuses (board order):"]
        stats = state.board.task_stats()
        for s in state.registry.statuses:
            lines.append(f"  {s.order:>3}. {s.name} [{s.id[:8]}] {s.color} - {stats.get(s.id, 0)} task(s)")
        return "\n".join(lines)

    if not state.is_manager:
        return MANAGER_ONLY

    sub = args[0].lower()
    rest = args[1:]

    if sub == "add" and rest:
        if len(rest) > 1 and rest[-1].startswith("#"):
            color, name_parts = rest[-1], rest[:-1]
        else:
            color, name_parts = "#6366f1", rest
        status = await state.registry.add_status(" ".join(name_parts), color)
        return f"Added status {status.name}."

    if sub == "rename" and len(rest) >= 2:
        status = _resolve_status(state, rest[0])
        updated = await state.registry.update_status(status.id, name=" ".join(rest[1:]))
        return f"Renamed {status.name} to {updated.name}."

    if sub in ("del", "delete") and rest:
        status = _resolve_status(state, " ".join(rest))
        await state.registry.delete_status(status.id)
        return f"Deleted status {status.name}. Tasks using it are now hidden from the board."

    if sub in ("up", "down") and rest:
        status = _resolve_status(state, " ".join(rest))
        moved = await state.registry.swap_order(status.id, "up" if sub == "up" else "down")
        return f"Moved {status.name} {sub}." if moved else f"{status.name} cannot move {sub}."

    return "Usage: /statuses [add <name> [#color] | rename <status> <name> | del <status> | up|down <status>]"


async def cmd_reload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("Reloading tasks, statuses and time entries...")
    await state.board.load_all()
    stats = state.board.task_stats()
    return f"Reloaded {stats['total']} task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show the acting user and backend.")
registry.register("board", cmd_board, help_text="Show the board: /board [search].", aliases=["b"])
registry.register("orphans", cmd_orphans, help_text="List tasks whose status was deleted.")
registry.register("move", cmd_move, help_text="Move your task: /move <task> <status>.", aliases=["mv"])
registry.register("assign", cmd_assign, help_text="Reassign (manager): /assign <task> <user_id> [name].")
registry.register("rate", cmd_rate, help_text="Rate a completed task: /rate <task> <1-5>.")
registry.register("delete", cmd_delete, help_text="Delete a task (manager): /delete <task>.", aliases=["rm"])
registry.register("new", cmd_new, help_text="Create a task (manager): /new <title> [!high] [~2h] [~30m].")
registry.register("time", cmd_time, help_text="Estimated vs actual time: /time <task>.")
registry.register("log", cmd_log, help_text="Log time manually: /log <task> <hours> [YYYY-MM-DD].")
registry.register("statuses", cmd_statuses, help_text="List or manage workflow statuses.")
registry.register("reload", cmd_reload, help_text="Reload everything from the backend.")
