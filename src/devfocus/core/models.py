# src/devfocus/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


class SubtaskStatus(StrEnum):
    """
    Subtask lifecycle status.

    Notes:
    - "done" is terminal; "paused" and "in_progress" may alternate freely.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> SubtaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


@dataclass(slots=True)
class Category:
    id: str
    name: str
    color: str
    created_at: str = ""


@dataclass(slots=True)
class Task:
    id: str
    title: str
    status: TaskStatus
    created_at: str
    updated_at: str
    description: str | None = None
    completed_at: str | None = None


@dataclass(slots=True)
class Subtask:
    id: str
    task_id: str
    title: str
    status: SubtaskStatus
    created_at: str
    updated_at: str
    completed_at: str | None = None
    # Finalized time of all ended sessions; never includes the open session.
    total_time_seconds: int = 0
    category_id: str | None = None
    category: Category | None = None


@dataclass(slots=True)
class TimeSession:
    id: str
    subtask_id: str
    started_at: str
    duration_seconds: int = 0
    paused_at: str | None = None
    resumed_at: str | None = None
    ended_at: str | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


@dataclass(slots=True)
class SubtaskWithSession:
    subtask: Subtask
    session: TimeSession | None = None


@dataclass(slots=True)
class TaskDetail:
    """A task with its subtasks (creation order) and each one's open session."""

    task: Task
    subtasks_with_sessions: list[SubtaskWithSession] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.task.id

    def find(self, subtask_id: str) -> SubtaskWithSession | None:
        for entry in self.subtasks_with_sessions:
            if entry.subtask.id == subtask_id:
                return entry
        return None

    @property
    def all_done(self) -> bool:
        entries = self.subtasks_with_sessions
        return bool(entries) and all(e.subtask.status == SubtaskStatus.DONE for e in entries)


@dataclass(slots=True)
class ActiveSubtaskInfo:
    id: str
    title: str
    total_time_seconds: int
    current_session_seconds: int | None = None


@dataclass(slots=True)
class TaskWithActiveSubtask:
    task: Task
    active_subtask: ActiveSubtaskInfo | None = None


@dataclass(slots=True)
class SubtaskCompletion:
    subtask: Subtask
    points_earned: int
    xp_gained: int
    streak_bonus_percentage: int
    time_spent_seconds: int
    category: Category | None = None


@dataclass(slots=True)
class UserProfile:
    total_xp: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_work_date: str | None = None  # YYYY-MM-DD (UTC)


@dataclass(slots=True, frozen=True)
class ProfileSummary:
    total_xp: int
    level: int
    xp_for_next_level: int
    progress_percentage: float
    current_streak: int
    longest_streak: int
    streak_bonus_percentage: int
    next_milestone: int
    streak_at_risk: bool


@dataclass(slots=True)
class CategoryStats:
    category: Category
    total_xp: int
    level: int
    xp_for_next_level: int
    progress_percentage: float


@dataclass(slots=True)
class SubtaskWithTime:
    subtask: Subtask
    total_time_seconds: int


@dataclass(slots=True)
class TaskMetrics:
    task_id: str
    task_title: str
    total_time_seconds: int
    total_points: int
    subtasks_completed: int
    subtasks_total: int
    average_time_per_subtask: float
    efficiency_rate: float
    completed_at: str
    subtasks_with_time: list[SubtaskWithTime] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class DailyPoints:
    date: str  # YYYY-MM-DD (UTC)
    points: int
    subtasks_completed: int


@dataclass(slots=True)
class GeneralMetrics:
    total_points: int
    points_today: int
    points_this_week: int
    points_last_7_days: list[DailyPoints]
    best_day: DailyPoints | None
    total_tasks_completed: int
    total_subtasks_completed: int
    average_completion_time_seconds: float
