# tests/test_sqlite_backend.py

from __future__ import annotations

import asyncio
import sqlite3
import time
from pathlib import Path

import pytest

from devfocus.backend.client import BackendClient
from devfocus.backend.store import DEFAULT_CATEGORIES, SQLiteBackend
from devfocus.core.errors import BackendCallFailure, InvalidTransition, NotFound, ValidationError
from devfocus.core.models import SubtaskStatus, TaskStatus

from .fakes import FakeClock


def _category_id(store: SQLiteBackend, name: str) -> str:
    return next(c.id for c in store.list_categories() if c.name == name)


def _started(store: SQLiteBackend, *, category: str | None = None) -> str:
    task = store.create_task("Ship release")
    cat_id = _category_id(store, category) if category else None
    sub = store.create_subtask(task.id, "Tag build", cat_id)
    store.start_subtask(sub.id)
    return sub.id


def test_default_categories_are_seeded_once(settings, clock: FakeClock) -> None:
    store = SQLiteBackend(settings.db_path, now_fn=clock)
    again = SQLiteBackend(settings.db_path, now_fn=clock)

    cats = {c.name: c.color for c in again.list_categories()}
    assert cats == dict(DEFAULT_CATEGORIES)
    assert all(s.total_xp == 0 and s.level == 1 for s in store.get_all_category_stats())


def test_old_schema_is_migrated(tmp_path: Path, clock: FakeClock) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.executescript(
        """
        CREATE TABLE subtasks (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL,
            title TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'todo',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            completed_at TEXT
        );
        INSERT INTO subtasks VALUES ('s-old', 't-old', 'legacy', 'todo', 'x', 'x', NULL);
        """
    )
    conn.commit()
    conn.close()

    store = SQLiteBackend(db, now_fn=clock)

    with sqlite3.connect(db) as check:
        cols = {row[1] for row in check.execute("PRAGMA table_info(subtasks)")}
    assert {"category_id", "total_time_seconds"} <= cols
    sub, session = store.get_subtask_with_session("s-old")
    assert sub.total_time_seconds == 0
    assert sub.category is None
    assert session is None


def test_create_task_validates_title(store: SQLiteBackend) -> None:
    with pytest.raises(ValidationError):
        store.create_task("   ")

    task = store.create_task("  Plan sprint  ", "  ")
    assert task.title == "Plan sprint"
    assert task.description is None
    assert task.status == TaskStatus.TODO


def test_list_tasks_newest_first_with_status_filter(store: SQLiteBackend, clock: FakeClock) -> None:
    a = store.create_task("first")
    clock.advance(60)
    b = store.create_task("second")
    store.update_task_status(a.id, "done")

    assert [r.task.id for r in store.list_tasks_with_active_subtasks()] == [b.id, a.id]
    assert [r.task.id for r in store.list_tasks_with_active_subtasks("done")] == [a.id]
    with pytest.raises(ValidationError):
        store.list_tasks_with_active_subtasks("archived")


def test_active_subtask_info_reports_live_session(store: SQLiteBackend, clock: FakeClock) -> None:
    sub_id = _started(store)
    clock.advance(75)

    (row,) = store.list_tasks_with_active_subtasks()

    assert row.active_subtask is not None
    assert row.active_subtask.id == sub_id
    assert row.active_subtask.current_session_seconds == 75


def test_update_task_status_sets_completed_at(store: SQLiteBackend) -> None:
    task = store.create_task("Release")

    done = store.update_task_status(task.id, "done")
    assert done.completed_at is not None
    reopened = store.update_task_status(task.id, "in_progress")
    assert reopened.completed_at is None

    with pytest.raises(ValidationError):
        store.update_task_status(task.id, "archived")
    with pytest.raises(NotFound):
        store.update_task_status("missing", "done")


def test_create_subtask_checks_task_and_category(store: SQLiteBackend) -> None:
    task = store.create_task("Docs")

    with pytest.raises(NotFound):
        store.create_subtask("missing", "x")
    with pytest.raises(NotFound):
        store.create_subtask(task.id, "x", "no-such-category")
    with pytest.raises(ValidationError):
        store.create_subtask(task.id, " ")

    sub = store.create_subtask(task.id, "Write intro", _category_id(store, "css"))
    assert sub.status == SubtaskStatus.TODO
    assert sub.category is not None and sub.category.color == "#ec4899"


def test_pause_resume_complete_books_points_and_xp(store: SQLiteBackend, clock: FakeClock) -> None:
    sub_id = _started(store, category="backend")
    clock.advance(30)
    paused = store.pause_subtask(sub_id, 30)
    assert paused.duration_seconds == 30

    clock.advance(600)
    store.resume_subtask(sub_id)
    clock.advance(15)
    completion = store.complete_subtask(sub_id, 45)

    assert completion.subtask.status == SubtaskStatus.DONE
    assert completion.subtask.total_time_seconds == 45
    assert completion.points_earned == 15
    assert completion.xp_gained == 45
    assert completion.streak_bonus_percentage == 0
    assert completion.category is not None and completion.category.name == "backend"

    profile = store.get_user_profile()
    assert profile.total_xp == 45
    assert profile.current_streak == 1
    assert profile.last_work_date == "2025-03-10"
    assert store.get_category_experience(_category_id(store, "backend")).total_xp == 45

    sub, session = store.get_subtask_with_session(sub_id)
    assert sub.completed_at is not None
    assert session is None


def test_stalled_client_seconds_are_recorded_as_submitted(store: SQLiteBackend, clock: FakeClock) -> None:
    sub_id = _started(store)
    clock.advance(3600)

    completion = store.complete_subtask(sub_id, 10)

    assert completion.time_spent_seconds == 10
    assert completion.subtask.total_time_seconds == 10
    assert completion.points_earned == 15


def test_session_transitions_are_enforced(store: SQLiteBackend) -> None:
    task = store.create_task("Refactor")
    sub = store.create_subtask(task.id, "Split module")

    with pytest.raises(InvalidTransition):
        store.pause_subtask(sub.id, 5)
    store.start_subtask(sub.id)
    with pytest.raises(InvalidTransition):
        store.start_subtask(sub.id)
    store.complete_subtask(sub.id, 5)
    with pytest.raises(InvalidTransition):
        store.pause_subtask(sub.id, 6)
    with pytest.raises(ValidationError):
        store.complete_subtask(sub.id, -1)

    # the failed calls left nothing behind
    assert store.get_subtask_with_session(sub.id)[0].total_time_seconds == 5


def test_only_one_subtask_per_task_runs(store: SQLiteBackend) -> None:
    task = store.create_task("Refactor")
    a = store.create_subtask(task.id, "Split module")
    b = store.create_subtask(task.id, "Rename helpers")
    other = store.create_subtask(store.create_task("Docs").id, "Outline")

    store.start_subtask(a.id)
    with pytest.raises(InvalidTransition):
        store.start_subtask(b.id)
    store.start_subtask(other.id)

    store.pause_subtask(a.id, 30)
    store.start_subtask(b.id)
    with pytest.raises(InvalidTransition):
        store.resume_subtask(a.id)

    detail = store.get_task_with_subtasks_and_sessions(task.id)
    statuses = [e.subtask.status for e in detail.subtasks_with_sessions]
    assert statuses == [SubtaskStatus.PAUSED, SubtaskStatus.IN_PROGRESS]


@pytest.mark.asyncio
async def test_second_running_subtask_fails_through_the_client(backend: BackendClient) -> None:
    task = await backend.create_task("Refactor")
    a = await backend.create_subtask(task.id, "Split module")
    b = await backend.create_subtask(task.id, "Rename helpers")
    await backend.start_subtask(a.id)

    with pytest.raises(BackendCallFailure) as info:
        await backend.start_subtask(b.id)

    assert isinstance(info.value.cause, InvalidTransition)
    assert "is in progress" in str(info.value)


def test_streak_across_days(store: SQLiteBackend, clock: FakeClock) -> None:
    store.complete_subtask(_started(store), 60)
    store.complete_subtask(_started(store), 60)
    assert store.get_user_profile().current_streak == 1

    clock.advance(days=1)
    store.complete_subtask(_started(store), 60)
    assert store.get_user_profile().current_streak == 2

    clock.advance(days=3)
    store.complete_subtask(_started(store), 60)
    profile = store.get_user_profile()
    assert profile.current_streak == 1
    assert profile.longest_streak == 2


def test_streak_bonus_raises_xp(settings, store: SQLiteBackend) -> None:
    with sqlite3.connect(settings.db_path) as conn:
        conn.execute(
            "UPDATE user_profile SET current_streak = 13, longest_streak = 13, last_work_date = '2025-03-09'"
        )

    completion = store.complete_subtask(_started(store), 100)

    assert completion.streak_bonus_percentage == 10
    assert completion.xp_gained == 110
    assert store.get_user_profile().current_streak == 14


def test_delete_task_cascades(store: SQLiteBackend) -> None:
    sub_id = _started(store)
    (row,) = store.list_tasks_with_active_subtasks()

    store.delete_task(row.task.id)

    with pytest.raises(NotFound):
        store.get_subtask_with_session(sub_id)
    assert store.list_tasks_with_active_subtasks() == []


def test_task_metrics(store: SQLiteBackend) -> None:
    task = store.create_task("Big feature")
    subs = [store.create_subtask(task.id, f"part {i}") for i in range(5)]
    for sub, seconds in zip(subs[:2], (600, 2000)):
        store.start_subtask(sub.id)
        store.complete_subtask(sub.id, seconds)

    m = store.get_task_metrics(task.id)

    assert m.subtasks_total == 5
    assert m.subtasks_completed == 2
    assert m.total_time_seconds == 2600
    # 15 + 10 + complexity bonus
    assert m.total_points == 45
    assert m.average_time_per_subtask == pytest.approx(1300.0)
    assert m.efficiency_rate == pytest.approx(50.0)
    assert [s.subtask.id for s in m.subtasks_with_time] == [s.id for s in subs]


def test_general_metrics(store: SQLiteBackend, clock: FakeClock) -> None:
    store.complete_subtask(_started(store), 100)
    clock.advance(days=1)
    store.complete_subtask(_started(store), 100)
    store.complete_subtask(_started(store), 2000)

    g = store.get_general_metrics()

    assert g.total_points == 40
    assert g.points_today == 25
    assert g.points_this_week == 40
    assert len(g.points_last_7_days) == 7
    assert g.points_last_7_days[-1].date == "2025-03-11"
    assert g.best_day is not None and g.best_day.date == "2025-03-11"
    assert g.total_subtasks_completed == 3
    assert g.total_tasks_completed == 0


def test_category_crud(store: SQLiteBackend) -> None:
    cat = store.create_category("devops", "#f97316")
    with pytest.raises(ValidationError):
        store.create_category("devops", "#000000")

    renamed = store.update_category(cat.id, "infra", "#f97316")
    assert renamed.name == "infra"

    task = store.create_task("Pipelines")
    sub = store.create_subtask(task.id, "CI", cat.id)
    store.delete_category(cat.id)

    assert store.get_subtask_with_session(sub.id)[0].category_id is None
    with pytest.raises(NotFound):
        store.get_category_experience(cat.id)


@pytest.mark.asyncio
async def test_client_wraps_failures(backend: BackendClient) -> None:
    with pytest.raises(BackendCallFailure) as exc:
        await backend.get_task_with_subtasks_and_sessions("missing")

    assert exc.value.command == "get_task_with_subtasks_and_sessions"
    assert isinstance(exc.value.cause, NotFound)


class _SlowStore:
    def get_user_profile(self):
        time.sleep(0.2)


@pytest.mark.asyncio
async def test_client_timeout_is_a_backend_failure() -> None:
    client = BackendClient(_SlowStore(), timeout_seconds=0.01)  # type: ignore[arg-type]

    with pytest.raises(BackendCallFailure) as exc:
        await client.get_user_profile()

    assert exc.value.command == "get_user_profile"
    # let the worker thread finish before the loop closes
    await asyncio.sleep(0.25)
