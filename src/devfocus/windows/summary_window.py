# src/devfocus/windows/summary_window.py

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from ..core import scoring
from ..core.clock import fmt_verbose, utc_day, utc_now
from ..core.errors import BackendCallFailure
from ..core.models import CategoryStats, GeneralMetrics, TaskMetrics, TaskStatus, UserProfile
from ..core.ports import Backend, Clock
from ..sync.events import SummaryLoad, SummaryRefresh, WindowLabel
from ..sync.windows import WindowManager

logger = logging.getLogger(__name__)


def _profile_line(profile: UserProfile | None, today: str) -> str | None:
    if profile is None:
        return None
    p = scoring.summarize_profile(profile, today)
    return (
        f"Level {p.level} ({p.progress_percentage:.0f}% to {p.level + 1})  "
        f"streak {p.current_streak}d (best {p.longest_streak}d) +{p.streak_bonus_percentage}% XP"
    )


class TaskSummaryController:
    """
    Per-task report.

    Seeded with `taskId` from the bootstrap URL, then retargeted by `summary:load`.
    Responses for a task the window has since moved away from are dropped.
    """

    label = WindowLabel.TASK_SUMMARY

    def __init__(
        self,
        backend: Backend,
        windows: WindowManager,
        *,
        params: Mapping[str, str] | None = None,
        now_fn: Clock | None = None,
    ) -> None:
        self.backend = backend
        self.windows = windows
        self._now = now_fn or utc_now
        self.task_id: str = (params or {}).get("taskId", "")
        self.metrics: TaskMetrics | None = None
        self.profile: UserProfile | None = None
        self.error: str | None = None
        self._epoch = 0
        self._unlisten: list[Callable[[], None]] = []

    def attach(self) -> None:
        self._unlisten.append(self.windows.listen(self.label, SummaryLoad, self.on_load))

    async def start(self) -> None:
        await self.load()

    def dispose(self) -> None:
        for unlisten in self._unlisten:
            unlisten()
        self._unlisten.clear()

    async def on_load(self, event: SummaryLoad) -> None:
        self.task_id = event.task_id
        await self.load()
        await self.windows.focus(self.label)

    async def load(self) -> None:
        if not self.task_id:
            return
        self._epoch += 1
        epoch = self._epoch
        task_id = self.task_id
        try:
            metrics = await self.backend.get_task_metrics(task_id)
            profile = await self.backend.get_user_profile()
        except BackendCallFailure as e:
            if epoch == self._epoch:
                self.error = str(e)
            logger.warning("Task summary load failed: %s", e)
            return
        if epoch != self._epoch:
            logger.debug("Task summary for %s dropped: newer load arrived", task_id)
            return
        self.metrics = metrics
        self.profile = profile
        self.error = None

    async def finish(self) -> None:
        """Mark the task done, tell main to refresh, close this window."""
        if not self.task_id:
            return
        try:
            await self.backend.update_task_status(self.task_id, TaskStatus.DONE.value)
        except BackendCallFailure as e:
            self.error = str(e)
            logger.warning("Task summary finish failed: %s", e)
            return
        await self.windows.emit_to(WindowLabel.MAIN, SummaryRefresh(task_id=self.task_id))
        await self.close()

    async def close(self) -> None:
        await self.windows.close(self.label)

    def render(self) -> list[str]:
        if self.error and self.metrics is None:
            return [f"! {self.error}"]
        m = self.metrics
        if m is None:
            return ["Loading summary..."]
        lines = [
            f"Summary: {m.task_title}",
            f"  time {fmt_verbose(m.total_time_seconds)}  points {m.total_points}",
            f"  subtasks {m.subtasks_completed}/{m.subtasks_total}  "
            f"avg {fmt_verbose(int(m.average_time_per_subtask))}  efficiency {m.efficiency_rate:.0f}%",
        ]
        for item in m.subtasks_with_time:
            lines.append(f"  - {item.subtask.title}: {fmt_verbose(item.total_time_seconds)}")
        profile = _profile_line(self.profile, utc_day(self._now()).isoformat())
        if profile:
            lines.append(profile)
        if self.error:
            lines.append(f"! {self.error}")
        return lines


class GeneralSummaryController:
    """Global report: points, last 7 days, category levels. Reloads whenever focused."""

    label = WindowLabel.GENERAL_SUMMARY

    def __init__(
        self,
        backend: Backend,
        windows: WindowManager,
        *,
        params: Mapping[str, str] | None = None,
        now_fn: Clock | None = None,
    ) -> None:
        self.backend = backend
        self.windows = windows
        self._now = now_fn or utc_now
        self.metrics: GeneralMetrics | None = None
        self.profile: UserProfile | None = None
        self.categories: list[CategoryStats] = []
        self.error: str | None = None
        self._epoch = 0

    def attach(self) -> None:
        return

    async def start(self) -> None:
        await self.load()

    async def on_focus(self) -> None:
        await self.load()

    def dispose(self) -> None:
        return

    async def load(self) -> None:
        self._epoch += 1
        epoch = self._epoch
        try:
            metrics = await self.backend.get_general_metrics()
            profile = await self.backend.get_user_profile()
            categories = await self.backend.get_all_category_stats()
        except BackendCallFailure as e:
            if epoch == self._epoch:
                self.error = str(e)
            logger.warning("General summary load failed: %s", e)
            return
        if epoch != self._epoch:
            return
        self.metrics = metrics
        self.profile = profile
        self.categories = categories
        self.error = None

    async def close(self) -> None:
        await self.windows.close(self.label)

    def render(self) -> list[str]:
        if self.error and self.metrics is None:
            return [f"! {self.error}"]
        m = self.metrics
        if m is None:
            return ["Loading summary..."]
        lines = [
            f"Points: total {m.total_points}  today {m.points_today}  week {m.points_this_week}",
            f"Completed: {m.total_tasks_completed} tasks, {m.total_subtasks_completed} subtasks  "
            f"avg {fmt_verbose(int(m.average_completion_time_seconds))}",
            "Last 7 days:",
        ]
        for day in m.points_last_7_days:
            lines.append(f"  {day.date}  {day.points:>4} pts  {day.subtasks_completed} done")
        if m.best_day is not None:
            lines.append(f"Best day: {m.best_day.date} ({m.best_day.points} pts)")
        profile = _profile_line(self.profile, utc_day(self._now()).isoformat())
        if profile:
            lines.append(profile)
        for stats in self.categories:
            lines.append(
                f"  {stats.category.name}: level {stats.level}  {stats.total_xp} XP "
                f"({stats.progress_percentage:.0f}%)"
            )
        if self.error:
            lines.append(f"! {self.error}")
        return lines
