# src/devfocus/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar, cast

from ..core import scoring
from ..core.clock import utc_day, utc_now
from ..core.errors import BackendCallFailure, ValidationError
from ..core.state import AppState
from ..sync.events import WindowLabel
from ..windows.main_window import MainWindowController
from ..windows.summary_window import GeneralSummaryController, TaskSummaryController
from ..windows.tracker_window import TrackerWindowController

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console (/help, /start, ...)."""

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
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                res = cast(CommandHandler3, handler)(state, args, emit)
            else:
                res = cast(CommandHandler2, handler)(state, args)
            if inspect.isawaitable(res):
                res = await res
        except ValidationError as e:
            return f"Error: {e}"
        return cast(str, res)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _main(state: AppState) -> MainWindowController:
    ctrl = state.controller(WindowLabel.MAIN)
    if not isinstance(ctrl, MainWindowController):
        raise ValidationError("main window is not open")
    return ctrl


def _pick(items: Sequence[T], args: list[str], what: str) -> T:
    if not args:
        raise ValidationError(f"usage: <{what} number>")
    try:
        idx = int(args[0])
    except ValueError:
        raise ValidationError(f"not a number: {args[0]}") from None
    if idx < 1 or idx > len(items):
        raise ValidationError(f"no {what} #{idx}")
    return items[idx - 1]


def _subtask_id(main: MainWindowController, args: list[str]) -> str:
    task = main.state.current_task
    if task is None:
        raise ValidationError("open a task first (/open <n>)")
    return _pick(task.subtasks_with_sessions, args, "subtask").subtask.id


def _view(main: MainWindowController) -> str:
    """Main window view plus the error slot (cleared once shown)."""
    out = "\n".join(main.render())
    main.state.error = None
    return out


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.refetch()
    return _view(main)


async def cmd_new(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.create_task(" ".join(args))
    return _view(main)


async def cmd_open(state: AppState, args: list[str]) -> str:
    main = _main(state)
    row = _pick(main.state.tasks, args, "task")
    await main.open_task(row.task.id)
    return _view(main)


async def cmd_back(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.back()
    await main.refetch()
    return _view(main)


async def cmd_sub(state: AppState, args: list[str]) -> str:
    """
    /sub <title>             -> add a subtask
    /sub <title> @category   -> add a subtask in a category
    """
    main = _main(state)
    words = [a for a in args if not a.startswith("@")]
    tags = [a[1:] for a in args if a.startswith("@") and len(a) > 1]
    category_id = None
    if tags:
        if not main.state.categories:
            await main.load_categories()
        wanted = tags[-1].lower()
        match = next((c for c in main.state.categories if c.name.lower() == wanted), None)
        if match is None:
            raise ValidationError(f"unknown category: {tags[-1]}")
        category_id = match.id
    await main.create_subtask(" ".join(words), category_id)
    return _view(main)


async def cmd_start(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.start_subtask(_subtask_id(main, args))
    return _view(main)


async def cmd_pause(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.pause_subtask(_subtask_id(main, args))
    return _view(main)


async def cmd_resume(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.resume_subtask(_subtask_id(main, args))
    return _view(main)


async def cmd_done(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.complete_subtask(_subtask_id(main, args))
    return _view(main)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.delete_subtask(_subtask_id(main, args))
    return _view(main)


async def cmd_deltask(state: AppState, args: list[str]) -> str:
    main = _main(state)
    row = _pick(main.state.tasks, args, "task")
    await main.delete_task(row.task.id)
    return _view(main)


async def cmd_tracker(state: AppState, args: list[str]) -> str:
    """
    /tracker          -> show the tracker window
    /tracker pause    -> pause from the tracker
    /tracker resume   -> resume from the tracker
    /tracker done     -> complete from the tracker
    """
    tracker = state.controller(WindowLabel.TRACKER)
    if not isinstance(tracker, TrackerWindowController):
        return "Tracker window is not open."
    if not args:
        return "\n".join(tracker.render())

    sub = args[0].lower()
    if sub == "pause":
        await tracker.pause()
    elif sub == "resume":
        await tracker.resume()
    elif sub == "done":
        await tracker.done()
    else:
        return "Usage: /tracker [pause|resume|done]"

    if tracker.state.error:
        return f"Tracker: {tracker.state.error}"
    return "\n".join(tracker.render()) if sub != "done" else "Tracker: subtask completed."


async def cmd_summary(state: AppState, args: list[str]) -> str:
    main = _main(state)
    await main.open_general_summary()
    summary = state.controller(WindowLabel.GENERAL_SUMMARY)
    if not isinstance(summary, GeneralSummaryController):
        return "General summary opened in the browser."
    return "\n".join(summary.render())


async def cmd_finish(state: AppState, args: list[str]) -> str:
    summary = state.controller(WindowLabel.TASK_SUMMARY)
    if not isinstance(summary, TaskSummaryController):
        return "Task summary window is not open."
    await summary.finish()
    if summary.error:
        return f"Summary: {summary.error}"
    return "Task marked done."


async def cmd_profile(state: AppState, args: list[str]) -> str:
    try:
        profile = await state.backend.get_user_profile()
    except BackendCallFailure as e:
        return f"Error: {e}"
    p = scoring.summarize_profile(profile, utc_day(utc_now()).isoformat())
    return (
        "Profile:\n"
        f"  Level: {p.level} ({p.total_xp}/{p.xp_for_next_level} XP, {p.progress_percentage:.1f}%)\n"
        f"  Streak: {p.current_streak} days (longest {p.longest_streak}), bonus +{p.streak_bonus_percentage}%\n"
        f"  Next milestone: {p.next_milestone} days{'  [at risk today]' if p.streak_at_risk else ''}"
    )


async def cmd_cats(state: AppState, args: list[str]) -> str:
    try:
        stats = await state.backend.get_all_category_stats()
    except BackendCallFailure as e:
        return f"Error: {e}"
    if not stats:
        return "No categories."
    lines = ["Categories:"]
    for s in stats:
        lines.append(
            f"  {s.category.name} ({s.category.color}) - level {s.level}, "
            f"{s.total_xp}/{s.xp_for_next_level} XP"
        )
    return "\n".join(lines)


def cmd_windows(state: AppState, args: list[str]) -> str:
    labels: list[Any] = state.windows.live_labels()
    if not labels:
        return "No windows open."
    return "Open windows: " + ", ".join(str(x) for x in labels)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="List tasks.", aliases=["ls"])
registry.register("new", cmd_new, help_text="Create a task: /new <title>.")
registry.register("open", cmd_open, help_text="Open a task: /open <n>.")
registry.register("back", cmd_back, help_text="Back to the task list.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <title> [@category].")
registry.register("start", cmd_start, help_text="Start a subtask: /start <n>.")
registry.register("pause", cmd_pause, help_text="Pause a subtask: /pause <n>.")
registry.register("resume", cmd_resume, help_text="Resume a subtask: /resume <n>.")
registry.register("done", cmd_done, help_text="Complete a subtask: /done <n>.")
registry.register("rm", cmd_rm, help_text="Delete a subtask: /rm <n>.")
registry.register("deltask", cmd_deltask, help_text="Delete a task: /deltask <n>.")
registry.register(
    "tracker", cmd_tracker, help_text="Tracker window: /tracker [pause|resume|done]."
)
registry.register("summary", cmd_summary, help_text="Open the general summary.")
registry.register("finish", cmd_finish, help_text="Mark the summarized task done.")
registry.register("profile", cmd_profile, help_text="Show XP, level and streak.")
registry.register("cats", cmd_cats, help_text="List categories with their levels.")
registry.register("windows", cmd_windows, help_text="Show open windows.")
