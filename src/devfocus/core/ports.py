# src/devfocus/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Window controllers depend on Protocols instead of concrete implementations.
The backend stays an opaque command surface reached over an async boundary,
and windows stay swappable (in-process host, real GUI toolkit, test fakes).
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from .models import (
    Category,
    CategoryStats,
    GeneralMetrics,
    Subtask,
    SubtaskCompletion,
    Task,
    TaskDetail,
    TaskMetrics,
    TaskWithActiveSubtask,
    TimeSession,
    UserProfile,
)

Clock = Callable[[], datetime]


class Backend(Protocol):
    """Async command surface. Every call may fail with BackendCallFailure."""

    # Tasks
    async def create_task(self, title: str, description: str | None = None) -> Task: ...
    async def list_tasks_with_active_subtasks(
            self, status_filter: str | None = None
    ) -> list[TaskWithActiveSubtask]: ...
    async def get_task_with_subtasks_and_sessions(self, task_id: str) -> TaskDetail: ...
    async def update_task_status(self, task_id: str, status: str) -> Task: ...
    async def delete_task(self, task_id: str) -> None: ...

    # Subtasks
    async def create_subtask(
            self, task_id: str, title: str, category_id: str | None = None
    ) -> Subtask: ...
    async def delete_subtask(self, subtask_id: str) -> None: ...

    # Sessions
    async def start_subtask(self, subtask_id: str) -> TimeSession: ...
    async def pause_subtask(self, subtask_id: str, duration_seconds: int) -> TimeSession: ...
    async def resume_subtask(self, subtask_id: str) -> TimeSession: ...
    async def complete_subtask(self, subtask_id: str, duration_seconds: int) -> SubtaskCompletion: ...
    async def get_subtask_with_session(self, subtask_id: str) -> tuple[Subtask, TimeSession | None]: ...

    # Metrics
    async def get_task_metrics(self, task_id: str) -> TaskMetrics: ...
    async def get_general_metrics(self) -> GeneralMetrics: ...

    # Categories
    async def create_category(self, name: str, color: str) -> Category: ...
    async def list_categories(self) -> list[Category]: ...
    async def update_category(self, category_id: str, name: str, color: str) -> Category: ...
    async def delete_category(self, category_id: str) -> None: ...
    async def get_category_experience(self, category_id: str) -> CategoryStats: ...
    async def get_all_category_stats(self) -> list[CategoryStats]: ...

    # Profile
    async def get_user_profile(self) -> UserProfile: ...


class WindowHandle(Protocol):
    """A live window instance registered under a fixed label."""

    label: str

    @property
    def is_alive(self) -> bool: ...

    async def focus(self) -> None: ...
    async def close(self) -> None: ...


class WindowFactory(Protocol):
    """
    Creates window instances.

    May raise (creation race, OS refusal); the WindowManager turns any failure
    into WindowOperationFailure and degrades to a browser tab.
    """

    async def create(self, label: str, url: str) -> WindowHandle: ...
