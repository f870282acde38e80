# src/devfocus/backend/client.py

from __future__ import annotations

"""
Async command client.

Windows reach the backend only through this boundary: every call runs the
blocking store method in a worker thread and any failure comes back as
BackendCallFailure. There is no timeout unless one is configured.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ..core.errors import BackendCallFailure
from ..core.models import (
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
from .store import SQLiteBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendClient:
    def __init__(self, store: SQLiteBackend, *, timeout_seconds: float | None = None) -> None:
        self._store = store
        self._timeout = timeout_seconds

    async def _call(self, command: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            coro = asyncio.to_thread(fn, *args)
            if self._timeout is not None:
                return await asyncio.wait_for(coro, timeout=self._timeout)
            return await coro
        except asyncio.CancelledError:
            raise
        except TimeoutError as e:
            logger.warning("Backend command %s timed out after %ss", command, self._timeout)
            raise BackendCallFailure(command, e) from e
        except Exception as e:
            logger.warning("Backend command %s failed: %s", command, e)
            raise BackendCallFailure(command, e) from e

    # ---- tasks ----

    async def create_task(self, title: str, description: str | None = None) -> Task:
        return await self._call("create_task", self._store.create_task, title, description)

    async def list_tasks_with_active_subtasks(
            self, status_filter: str | None = None
    ) -> list[TaskWithActiveSubtask]:
        return await self._call(
            "list_tasks_with_active_subtasks",
            self._store.list_tasks_with_active_subtasks,
            status_filter,
        )

    async def get_task_with_subtasks_and_sessions(self, task_id: str) -> TaskDetail:
        return await self._call(
            "get_task_with_subtasks_and_sessions",
            self._store.get_task_with_subtasks_and_sessions,
            task_id,
        )

    async def update_task_status(self, task_id: str, status: str) -> Task:
        return await self._call("update_task_status", self._store.update_task_status, task_id, status)

    async def delete_task(self, task_id: str) -> None:
        await self._call("delete_task", self._store.delete_task, task_id)

    # ---- subtasks ----

    async def create_subtask(
            self, task_id: str, title: str, category_id: str | None = None
    ) -> Subtask:
        return await self._call("create_subtask", self._store.create_subtask, task_id, title, category_id)

    async def delete_subtask(self, subtask_id: str) -> None:
        await self._call("delete_subtask", self._store.delete_subtask, subtask_id)

    # ---- sessions ----

    async def start_subtask(self, subtask_id: str) -> TimeSession:
        return await self._call("start_subtask", self._store.start_subtask, subtask_id)

    async def pause_subtask(self, subtask_id: str, duration_seconds: int) -> TimeSession:
        return await self._call("pause_subtask", self._store.pause_subtask, subtask_id, duration_seconds)

    async def resume_subtask(self, subtask_id: str) -> TimeSession:
        return await self._call("resume_subtask", self._store.resume_subtask, subtask_id)

    async def complete_subtask(self, subtask_id: str, duration_seconds: int) -> SubtaskCompletion:
        return await self._call(
            "complete_subtask", self._store.complete_subtask, subtask_id, duration_seconds
        )

    async def get_subtask_with_session(self, subtask_id: str) -> tuple[Subtask, TimeSession | None]:
        return await self._call("get_subtask_with_session", self._store.get_subtask_with_session, subtask_id)

    # ---- metrics ----

    async def get_task_metrics(self, task_id: str) -> TaskMetrics:
        return await self._call("get_task_metrics", self._store.get_task_metrics, task_id)

    async def get_general_metrics(self) -> GeneralMetrics:
        return await self._call("get_general_metrics", self._store.get_general_metrics)

    # ---- categories ----

    async def create_category(self, name: str, color: str) -> Category:
        return await self._call("create_category", self._store.create_category, name, color)

    async def list_categories(self) -> list[Category]:
        return await self._call("list_categories", self._store.list_categories)

    async def update_category(self, category_id: str, name: str, color: str) -> Category:
        return await self._call("update_category", self._store.update_category, category_id, name, color)

    async def delete_category(self, category_id: str) -> None:
        await self._call("delete_category", self._store.delete_category, category_id)

    async def get_category_experience(self, category_id: str) -> CategoryStats:
        return await self._call("get_category_experience", self._store.get_category_experience, category_id)

    async def get_all_category_stats(self) -> list[CategoryStats]:
        return await self._call("get_all_category_stats", self._store.get_all_category_stats)

    # ---- profile ----

    async def get_user_profile(self) -> UserProfile:
        return await self._call("get_user_profile", self._store.get_user_profile)
