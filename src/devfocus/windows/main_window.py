# src/devfocus/windows/main_window.py

"""
Main window controller.

Holds the window-local store (task list, current task, active subtask, profile,
categories). Only backend-response handlers and sync-event handlers write to it;
`render()` only reads.

Every fetch is stamped with a per-slice sequence number and a response is applied
only if it is newer than the last one applied for that slice, so a slow response
can never overwrite a fresher one.

Session mutations (start/pause/resume) snapshot an action epoch before the backend
call. Navigation and tracker events bump it; a response that comes back under a
newer epoch only refreshes the lists and leaves the active subtask alone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..core import scoring
from ..core.clock import fmt_hms, utc_day, utc_now
from ..core.errors import BackendCallFailure, StaleStateRace, ValidationError
from ..core.models import (
    Category,
    SubtaskStatus,
    TaskDetail,
    TaskWithActiveSubtask,
    TimeSession,
    UserProfile,
)
from ..core.ports import Backend, Clock
from ..core.sessions import displayed_total
from ..sync.events import (
    SummaryLoad,
    SummaryRefresh,
    TrackerAction,
    TrackerClose,
    TrackerLoad,
    TrackerUpdated,
    WindowLabel,
)
from ..sync.windows import WindowManager, tracker_params

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MainViewState:
    tasks: list[TaskWithActiveSubtask] = field(default_factory=list)
    current_task: TaskDetail | None = None
    active_subtask_id: str | None = None
    active_session: TimeSession | None = None
    profile: UserProfile | None = None
    categories: list[Category] = field(default_factory=list)
    error: str | None = None


class MainWindowController:
    label = WindowLabel.MAIN

    def __init__(self, backend: Backend, windows: WindowManager, *, now_fn: Clock | None = None) -> None:
        self.backend = backend
        self.windows = windows
        self._now = now_fn or utc_now
        self.state = MainViewState()
        self._issued: dict[str, int] = {}
        self._applied: dict[str, int] = {}
        self._epoch = 0
        self._summarized_task_ids: set[str] = set()
        self._unlisten: list[Callable[[], None]] = []

    # ---- lifecycle ----

    def attach(self) -> None:
        self._unlisten.append(self.windows.listen(self.label, TrackerUpdated, self.on_tracker_updated))
        self._unlisten.append(self.windows.listen(self.label, SummaryRefresh, self.on_summary_refresh))

    async def start(self) -> None:
        await self.refetch()
        await self.load_profile()
        await self.load_categories()

    def dispose(self) -> None:
        for unlisten in self._unlisten:
            unlisten()
        self._unlisten.clear()

    # ---- stale guard ----

    def _issue(self, slice_name: str) -> int:
        seq = self._issued.get(slice_name, 0) + 1
        self._issued[slice_name] = seq
        return seq

    def _fresh(self, slice_name: str, seq: int) -> bool:
        if seq <= self._applied.get(slice_name, 0):
            logger.debug("Dropping stale %s response seq=%d", slice_name, seq)
            return False
        self._applied[slice_name] = seq
        return True

    def _bump(self) -> None:
        self._epoch += 1

    def _fail(self, e: BackendCallFailure) -> None:
        self.state.error = str(e)
        logger.warning("Main window: %s", e)

    # ---- fetches ----

    async def refetch(self) -> None:
        seq = self._issue("tasks")
        try:
            tasks = await self.backend.list_tasks_with_active_subtasks()
        except BackendCallFailure as e:
            self._fail(e)
            return
        if self._fresh("tasks", seq):
            self.state.tasks = tasks

    async def load_profile(self) -> None:
        seq = self._issue("profile")
        try:
            profile = await self.backend.get_user_profile()
        except BackendCallFailure as e:
            self._fail(e)
            return
        if self._fresh("profile", seq):
            self.state.profile = profile

    async def load_categories(self) -> None:
        seq = self._issue("categories")
        try:
            categories = await self.backend.list_categories()
        except BackendCallFailure as e:
            self._fail(e)
            return
        if self._fresh("categories", seq):
            self.state.categories = categories

    async def refresh_current_task(self) -> TaskDetail | None:
        task = self.state.current_task
        if task is None:
            return None
        seq = self._issue("current_task")
        try:
            detail = await self.backend.get_task_with_subtasks_and_sessions(task.id)
        except BackendCallFailure as e:
            self._fail(e)
            return None

        current = self.state.current_task
        if current is None or current.id != detail.id:
            logger.debug("Dropping detail for %s: window moved on", detail.id)
            return None
        if not self._fresh("current_task", seq):
            return self.state.current_task
        self.state.current_task = detail
        if not detail.all_done:
            self._summarized_task_ids.discard(detail.id)

        active_id = self.state.active_subtask_id
        if active_id is not None:
            entry = detail.find(active_id)
            if entry is not None and entry.session is not None:
                self.state.active_session = entry.session
        return detail

    # ---- navigation ----

    async def open_task(self, task_id: str) -> TaskDetail | None:
        if not task_id:
            raise ValidationError("task id is required")
        seq = self._issue("current_task")
        try:
            detail = await self.backend.get_task_with_subtasks_and_sessions(task_id)
        except BackendCallFailure as e:
            self._fail(e)
            return None
        if not self._fresh("current_task", seq):
            return None

        self._bump()
        self.state.current_task = detail
        self.state.error = None
        self.state.active_subtask_id = None
        self.state.active_session = None

        for entry in detail.subtasks_with_sessions:
            if entry.subtask.status == SubtaskStatus.IN_PROGRESS and entry.session is not None:
                self.state.active_subtask_id = entry.subtask.id
                self.state.active_session = entry.session
                await self.sync_tracker(entry.subtask.id, focus=False)
                break
        return detail

    async def back(self) -> None:
        self._bump()
        self.state.current_task = None
        self.state.active_subtask_id = None
        self.state.active_session = None
        # A pending detail fetch must not re-open the view.
        self._applied["current_task"] = self._issue("current_task")
        await self.close_tracker()

    # ---- task commands ----

    async def create_task(self, title: str, description: str | None = None) -> None:
        if not title or not title.strip():
            raise ValidationError("title is required")
        try:
            await self.backend.create_task(title.strip(), description)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self.refetch()

    async def delete_task(self, task_id: str) -> None:
        if not task_id:
            raise ValidationError("task id is required")
        try:
            await self.backend.delete_task(task_id)
        except BackendCallFailure as e:
            self._fail(e)
            return
        current = self.state.current_task
        if current is not None and current.id == task_id:
            await self.back()
        await self.refetch()

    async def update_task_status(self, task_id: str, status: str) -> None:
        try:
            await self.backend.update_task_status(task_id, status)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self.refetch()
        await self.refresh_current_task()

    # ---- subtask commands ----

    async def create_subtask(self, title: str, category_id: str | None = None) -> None:
        task = self.state.current_task
        if task is None:
            raise ValidationError("no task is open")
        if not title or not title.strip():
            raise ValidationError("title is required")
        try:
            await self.backend.create_subtask(task.id, title.strip(), category_id)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self.refresh_current_task()
        await self.refetch()

    async def delete_subtask(self, subtask_id: str) -> None:
        if not subtask_id:
            raise ValidationError("subtask id is required")
        try:
            await self.backend.delete_subtask(subtask_id)
        except BackendCallFailure as e:
            self._fail(e)
            return
        if self.state.active_subtask_id == subtask_id:
            self.state.active_subtask_id = None
            self.state.active_session = None
            await self.close_tracker()
        await self.refresh_current_task()
        await self.refetch()

    def current_seconds(self, subtask_id: str) -> int:
        """Live-reconstructed total for a subtask of the open task."""
        task = self.state.current_task
        entry = task.find(subtask_id) if task is not None else None
        if entry is None:
            raise ValidationError(f"subtask is not part of the open task: {subtask_id}")
        return displayed_total(entry.subtask, entry.session, self._now())

    async def start_subtask(self, subtask_id: str) -> None:
        if not subtask_id:
            raise ValidationError("subtask id is required")
        epoch = self._epoch
        try:
            session = await self.backend.start_subtask(subtask_id)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self._apply_session(subtask_id, session, epoch, focus=True)

    async def pause_subtask(self, subtask_id: str) -> None:
        seconds = self.current_seconds(subtask_id)
        epoch = self._epoch
        try:
            session = await self.backend.pause_subtask(subtask_id, seconds)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self._apply_session(subtask_id, session, epoch, focus=False)

    async def resume_subtask(self, subtask_id: str) -> None:
        if not subtask_id:
            raise ValidationError("subtask id is required")
        epoch = self._epoch
        try:
            session = await self.backend.resume_subtask(subtask_id)
        except BackendCallFailure as e:
            self._fail(e)
            return
        await self._apply_session(subtask_id, session, epoch, focus=False)

    async def _apply_session(self, subtask_id: str, session: TimeSession, epoch: int, *, focus: bool) -> None:
        if epoch != self._epoch:
            logger.debug("Dropping session response for %s: window moved on", subtask_id)
            await self.refetch()
            await self.refresh_current_task()
            return

        self.state.error = None
        self.state.active_subtask_id = subtask_id
        self.state.active_session = session
        await self.refetch()
        await self.refresh_current_task()
        if epoch != self._epoch:
            return

        task = self.state.current_task
        entry = task.find(subtask_id) if task is not None else None
        if entry is None or entry.subtask.status not in (SubtaskStatus.IN_PROGRESS, SubtaskStatus.PAUSED):
            if self.state.active_subtask_id == subtask_id:
                self.state.active_subtask_id = None
                self.state.active_session = None
            return
        await self.sync_tracker(subtask_id, focus=focus)

    async def complete_subtask(self, subtask_id: str) -> None:
        seconds = self.current_seconds(subtask_id)
        try:
            completion = await self.backend.complete_subtask(subtask_id, seconds)
        except BackendCallFailure as e:
            self._fail(e)
            return
        self.state.error = None
        if completion.streak_bonus_percentage > 0:
            logger.info(
                "Streak bonus +%d%% XP (%d XP total)",
                completion.streak_bonus_percentage,
                completion.xp_gained,
            )
        await self._after_done(subtask_id)

    async def _after_done(self, subtask_id: str) -> None:
        self._bump()
        # The tracker may already show another subtask of this task.
        was_active = self.state.active_subtask_id in (None, subtask_id)
        if was_active:
            self.state.active_subtask_id = None
            self.state.active_session = None
        await self.refetch()
        detail = await self.refresh_current_task()
        if was_active:
            await self.close_tracker()
        await self.load_profile()

        task = detail or self.state.current_task
        if task is not None and task.all_done and task.id not in self._summarized_task_ids:
            self._summarized_task_ids.add(task.id)
            await self.open_task_summary(task.id)

    # ---- windows ----

    def tracker_state(self, subtask_id: str) -> TrackerLoad | None:
        task = self.state.current_task
        entry = task.find(subtask_id) if task is not None else None
        if entry is None or entry.subtask.status == SubtaskStatus.DONE:
            return None
        subtask = entry.subtask
        category = subtask.category
        return TrackerLoad(
            subtask_id=subtask.id,
            title=subtask.title or "Subtask",
            seconds=displayed_total(subtask, entry.session, self._now()),
            paused=subtask.status == SubtaskStatus.PAUSED,
            category_name=category.name if category else None,
            category_color=category.color if category else None,
        )

    async def sync_tracker(self, subtask_id: str, *, focus: bool = True) -> None:
        """Open the tracker (or reuse the live one) and push the recomputed state."""
        load = self.tracker_state(subtask_id)
        if load is None:
            return
        opened = await self.windows.get_or_create(WindowLabel.TRACKER, tracker_params(load), focus=focus)
        if opened is None:
            return
        await self.windows.emit_to(WindowLabel.TRACKER, load)

    async def close_tracker(self) -> None:
        if await self.windows.emit_to(WindowLabel.TRACKER, TrackerClose()):
            return
        await self.windows.close(WindowLabel.TRACKER)

    async def open_task_summary(self, task_id: str) -> None:
        opened = await self.windows.get_or_create(WindowLabel.TASK_SUMMARY, {"taskId": task_id}, focus=True)
        if opened is None:
            return
        _, created = opened
        if not created:
            await self.windows.emit_to(WindowLabel.TASK_SUMMARY, SummaryLoad(task_id=task_id))

    async def open_general_summary(self) -> None:
        await self.windows.get_or_create(WindowLabel.GENERAL_SUMMARY, focus=True)

    # ---- sync handlers ----

    async def on_tracker_updated(self, event: TrackerUpdated) -> None:
        task = self.state.current_task
        if task is None or task.find(event.subtask_id) is None:
            await self.refetch()
            raise StaleStateRace(f"tracker update for {event.subtask_id} outside the open task")

        if event.action == TrackerAction.DONE:
            await self._after_done(event.subtask_id)
            return

        self._bump()
        self.state.active_subtask_id = event.subtask_id
        await self.refetch()
        await self.refresh_current_task()
        await self.sync_tracker(event.subtask_id, focus=False)

    async def on_summary_refresh(self, event: SummaryRefresh) -> None:
        await self.refetch()
        await self.refresh_current_task()
        await self.load_profile()
        await self.back()

    # ---- render ----

    def render(self) -> list[str]:
        s = self.state
        lines: list[str] = []
        if s.profile is not None:
            p = scoring.summarize_profile(s.profile, utc_day(self._now()).isoformat())
            risk = " (at risk)" if p.streak_at_risk and p.current_streak > 0 else ""
            lines.append(
                f"Level {p.level}  {p.total_xp}/{p.xp_for_next_level} XP ({p.progress_percentage:.0f}%)  "
                f"streak {p.current_streak}d{risk} +{p.streak_bonus_percentage}%  next {p.next_milestone}d"
            )
        if s.error:
            lines.append(f"! {s.error}")

        if s.current_task is None:
            lines.append("Tasks:")
            if not s.tasks:
                lines.append("  (no tasks yet)")
            for i, row in enumerate(s.tasks, start=1):
                active = ""
                if row.active_subtask is not None:
                    a = row.active_subtask
                    live = a.total_time_seconds + (a.current_session_seconds or 0)
                    active = f"  > {a.title} {fmt_hms(live)}"
                lines.append(f"  {i}. [{row.task.status}] {row.task.title}{active}")
            return lines

        task = s.current_task
        entries = task.subtasks_with_sessions
        done = sum(1 for e in entries if e.subtask.status == SubtaskStatus.DONE)
        lines.append(f"{task.task.title} [{task.task.status}]  {done}/{len(entries)} subtasks completed")
        if task.task.description:
            lines.append(f"  {task.task.description}")
        if not entries:
            lines.append("  (no subtasks yet)")
        now = self._now()
        for i, e in enumerate(entries, start=1):
            marker = "*" if e.subtask.id == s.active_subtask_id else " "
            cat = f" @{e.subtask.category.name}" if e.subtask.category else ""
            secs = displayed_total(e.subtask, e.session, now)
            lines.append(f" {marker}{i}. [{e.subtask.status}] {e.subtask.title}{cat}  {fmt_hms(secs)}")
        return lines
