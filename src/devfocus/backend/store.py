# src/devfocus/backend/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from pathlib import Path

from ..core import scoring, sessions
from ..core.clock import to_iso, utc_day, utc_now
from ..core.errors import InvalidTransition, NotFound, ValidationError
from ..core.models import (
    ActiveSubtaskInfo,
    Category,
    CategoryStats,
    DailyPoints,
    GeneralMetrics,
    Subtask,
    SubtaskCompletion,
    SubtaskStatus,
    SubtaskWithSession,
    SubtaskWithTime,
    Task,
    TaskDetail,
    TaskMetrics,
    TaskStatus,
    TaskWithActiveSubtask,
    TimeSession,
    UserProfile,
)
from ..core.ports import Clock
from ..metrics import aggregator

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("frontend", "#3b82f6"),
    ("backend", "#10b981"),
    ("architecture", "#8b5cf6"),
    ("css", "#ec4899"),
    ("tailwind", "#06b6d4"),
)

_SUBTASK_SELECT = """
    SELECT s.*,
           c.name AS category_name,
           c.color AS category_color,
           c.created_at AS category_created_at
    FROM subtasks s
    LEFT JOIN categories c ON c.id = s.category_id
"""


class SQLiteBackend:
    """
    Reference implementation of the backend command surface over SQLite.

    Schema handling follows the usual pattern:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - mutations are serialized with one process-wide lock
    """

    def __init__(self, db_path: str | Path = "devfocus.sqlite3", *, now_fn: Clock | None = None) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._now = now_fn or utc_now
        self._lock = threading.Lock()
        self._ensure_schema()
        logger.info("SQLiteBackend ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    @contextlib.contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._write() as conn:
            cur = conn.cursor()
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'todo',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT
                );

                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT UNIQUE NOT NULL,
                    color TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS category_experience (
                    category_id TEXT PRIMARY KEY,
                    total_xp INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS subtasks (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'todo',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT,
                    category_id TEXT REFERENCES categories(id) ON DELETE SET NULL,
                    total_time_seconds INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(task_id) REFERENCES tasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS time_sessions (
                    id TEXT PRIMARY KEY,
                    subtask_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    paused_at TEXT,
                    resumed_at TEXT,
                    ended_at TEXT,
                    duration_seconds INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(subtask_id) REFERENCES subtasks(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS point_ledger (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    subtask_id TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    category_id TEXT,
                    points INTEGER NOT NULL,
                    xp INTEGER NOT NULL,
                    efficient INTEGER NOT NULL DEFAULT 0,
                    duration_seconds INTEGER NOT NULL,
                    earned_at TEXT NOT NULL,
                    day TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS user_profile (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    total_xp INTEGER NOT NULL DEFAULT 0,
                    current_streak INTEGER NOT NULL DEFAULT 0,
                    longest_streak INTEGER NOT NULL DEFAULT 0,
                    last_work_date TEXT
                );
                """
            )

            # Migrations (safe): older DBs predate categories and stored totals.
            cur.execute("PRAGMA table_info(subtasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE subtasks ADD COLUMN {name} {decl}")
                logger.info("SQLiteBackend migration: added subtasks.%s", name)

            add_col("category_id", "TEXT REFERENCES categories(id) ON DELETE SET NULL")
            add_col("total_time_seconds", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_task_id ON subtasks(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_category_id ON subtasks(category_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_time_sessions_subtask_id ON time_sessions(subtask_id)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_point_ledger_day ON point_ledger(day)")
            cur.execute("INSERT OR IGNORE INTO user_profile(id) VALUES (1)")

            self._seed_categories(cur)

    def _seed_categories(self, cur: sqlite3.Cursor) -> None:
        now = to_iso(self._now())
        for name, color in DEFAULT_CATEGORIES:
            cur.execute(
                "INSERT OR IGNORE INTO categories(id, name, color, created_at) VALUES (?, ?, ?, ?)",
                (str(uuid.uuid4()), name, color, now),
            )
            cur.execute("SELECT id FROM categories WHERE name = ?", (name,))
            (category_id,) = cur.fetchone()
            cur.execute(
                "INSERT OR IGNORE INTO category_experience(category_id, total_xp, updated_at) "
                "VALUES (?, 0, ?)",
                (category_id, now),
            )

    # ---- row mapping ----

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            description=row["description"],
            status=TaskStatus.from_db(row["status"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            completed_at=row["completed_at"],
        )

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=str(row["id"]),
            name=str(row["name"]),
            color=str(row["color"]),
            created_at=str(row["created_at"] or ""),
        )

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        category = None
        if row["category_id"] and row["category_name"]:
            category = Category(
                id=str(row["category_id"]),
                name=str(row["category_name"]),
                color=str(row["category_color"]),
                created_at=str(row["category_created_at"] or ""),
            )
        return Subtask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            title=str(row["title"]),
            status=SubtaskStatus.from_db(row["status"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            completed_at=row["completed_at"],
            total_time_seconds=int(row["total_time_seconds"] or 0),
            category_id=row["category_id"],
            category=category,
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> TimeSession:
        return TimeSession(
            id=str(row["id"]),
            subtask_id=str(row["subtask_id"]),
            started_at=str(row["started_at"]),
            duration_seconds=int(row["duration_seconds"] or 0),
            paused_at=row["paused_at"],
            resumed_at=row["resumed_at"],
            ended_at=row["ended_at"],
        )

    # ---- shared lookups (caller owns the connection) ----

    def _load_task(self, conn: sqlite3.Connection, task_id: str) -> Task:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFound(f"task not found: {task_id}")
        return self._row_to_task(row)

    def _load_subtask(self, conn: sqlite3.Connection, subtask_id: str) -> Subtask:
        row = conn.execute(f"{_SUBTASK_SELECT} WHERE s.id = ?", (subtask_id,)).fetchone()
        if row is None:
            raise NotFound(f"subtask not found: {subtask_id}")
        return self._row_to_subtask(row)

    def _open_session(self, conn: sqlite3.Connection, subtask_id: str) -> TimeSession | None:
        row = conn.execute(
            "SELECT * FROM time_sessions WHERE subtask_id = ? AND ended_at IS NULL "
            "ORDER BY started_at DESC LIMIT 1",
            (subtask_id,),
        ).fetchone()
        return self._row_to_session(row) if row is not None else None

    def _check_single_running(self, conn: sqlite3.Connection, subtask: Subtask, action: str) -> None:
        # At most one in_progress subtask per task.
        row = conn.execute(
            "SELECT id FROM subtasks WHERE task_id = ? AND status = ? AND id != ? LIMIT 1",
            (subtask.task_id, SubtaskStatus.IN_PROGRESS.value, subtask.id),
        ).fetchone()
        if row is not None:
            raise InvalidTransition(
                action,
                str(subtask.status),
                f"cannot {action} subtask {subtask.id}: subtask {row['id']} of the same task is in progress",
            )

    def _subtasks_of(self, conn: sqlite3.Connection, task_id: str) -> list[Subtask]:
        rows = conn.execute(
            f"{_SUBTASK_SELECT} WHERE s.task_id = ? ORDER BY s.created_at ASC, s.rowid ASC",
            (task_id,),
        ).fetchall()
        return [self._row_to_subtask(r) for r in rows]

    @staticmethod
    def _save_subtask(conn: sqlite3.Connection, s: Subtask) -> None:
        conn.execute(
            """
            UPDATE subtasks
            SET status = ?, updated_at = ?, completed_at = ?, total_time_seconds = ?
            WHERE id = ?
            """,
            (s.status.value, s.updated_at, s.completed_at, int(s.total_time_seconds), s.id),
        )

    @staticmethod
    def _save_session(conn: sqlite3.Connection, ts: TimeSession) -> None:
        conn.execute(
            """
            UPDATE time_sessions
            SET paused_at = ?, resumed_at = ?, ended_at = ?, duration_seconds = ?
            WHERE id = ?
            """,
            (ts.paused_at, ts.resumed_at, ts.ended_at, int(ts.duration_seconds), ts.id),
        )

    # ---- tasks ----

    def create_task(self, title: str, description: str | None = None) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required")
        description = (description or "").strip() or None
        now = to_iso(self._now())
        task = Task(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            status=TaskStatus.TODO,
            created_at=now,
            updated_at=now,
        )
        with self._write() as conn:
            conn.execute(
                "INSERT INTO tasks(id, title, description, status, created_at, updated_at, completed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, NULL)",
                (task.id, task.title, task.description, task.status.value, now, now),
            )
        logger.debug("Task created id=%s", task.id)
        return task

    def list_tasks_with_active_subtasks(
        self, status_filter: str | None = None
    ) -> list[TaskWithActiveSubtask]:
        now = self._now()
        with self._read() as conn:
            if status_filter:
                try:
                    status = TaskStatus(status_filter)
                except ValueError:
                    raise ValidationError(f"unknown task status: {status_filter}") from None
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE status = ? ORDER BY created_at DESC, rowid DESC",
                    (status.value,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks ORDER BY created_at DESC, rowid DESC"
                ).fetchall()

            out: list[TaskWithActiveSubtask] = []
            for row in rows:
                task = self._row_to_task(row)
                active_row = conn.execute(
                    f"{_SUBTASK_SELECT} WHERE s.task_id = ? AND s.status = ? "
                    "ORDER BY s.updated_at DESC LIMIT 1",
                    (task.id, SubtaskStatus.IN_PROGRESS.value),
                ).fetchone()
                active = None
                if active_row is not None:
                    sub = self._row_to_subtask(active_row)
                    session = self._open_session(conn, sub.id)
                    current = None
                    if session is not None:
                        current = int(session.duration_seconds) + sessions.live_elapsed(
                            sub.status, session, now
                        )
                    active = ActiveSubtaskInfo(
                        id=sub.id,
                        title=sub.title,
                        total_time_seconds=sub.total_time_seconds,
                        current_session_seconds=current,
                    )
                out.append(TaskWithActiveSubtask(task=task, active_subtask=active))
            return out

    def get_task_with_subtasks_and_sessions(self, task_id: str) -> TaskDetail:
        with self._read() as conn:
            task = self._load_task(conn, task_id)
            entries = [
                SubtaskWithSession(subtask=s, session=self._open_session(conn, s.id))
                for s in self._subtasks_of(conn, task_id)
            ]
            return TaskDetail(task=task, subtasks_with_sessions=entries)

    def update_task_status(self, task_id: str, status: str) -> Task:
        try:
            new_status = TaskStatus(status)
        except ValueError:
            raise ValidationError(f"unknown task status: {status}") from None
        now = to_iso(self._now())
        completed_at = now if new_status == TaskStatus.DONE else None
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE tasks SET status = ?, updated_at = ?, completed_at = ? WHERE id = ?",
                (new_status.value, now, completed_at, task_id),
            )
            if cur.rowcount == 0:
                raise NotFound(f"task not found: {task_id}")
            return self._load_task(conn, task_id)

    def delete_task(self, task_id: str) -> None:
        with self._write() as conn:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    # ---- subtasks ----

    def create_subtask(self, task_id: str, title: str, category_id: str | None = None) -> Subtask:
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required")
        if not task_id:
            raise ValidationError("task id is required")
        now = to_iso(self._now())
        subtask_id = str(uuid.uuid4())
        with self._write() as conn:
            self._load_task(conn, task_id)
            if category_id is not None:
                found = conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone()
                if found is None:
                    raise NotFound(f"category not found: {category_id}")
            conn.execute(
                """
                INSERT INTO subtasks(id, task_id, title, status, created_at, updated_at,
                                     completed_at, category_id, total_time_seconds)
                VALUES (?, ?, ?, ?, ?, ?, NULL, ?, 0)
                """,
                (subtask_id, task_id, title, SubtaskStatus.TODO.value, now, now, category_id),
            )
            return self._load_subtask(conn, subtask_id)

    def delete_subtask(self, subtask_id: str) -> None:
        with self._write() as conn:
            conn.execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,))

    # ---- sessions ----

    def start_subtask(self, subtask_id: str) -> TimeSession:
        now = self._now()
        with self._write() as conn:
            subtask = self._load_subtask(conn, subtask_id)
            subtask, session = sessions.start(subtask, now=now)
            self._check_single_running(conn, subtask, "start")
            self._save_subtask(conn, subtask)
            conn.execute(
                "INSERT INTO time_sessions(id, subtask_id, started_at, duration_seconds) "
                "VALUES (?, ?, ?, 0)",
                (session.id, session.subtask_id, session.started_at),
            )
        logger.debug("Subtask started id=%s session=%s", subtask_id, session.id)
        return session

    def pause_subtask(self, subtask_id: str, duration_seconds: int) -> TimeSession:
        now = self._now()
        with self._write() as conn:
            subtask = self._load_subtask(conn, subtask_id)
            session = self._open_session(conn, subtask_id)
            subtask, session = sessions.pause(subtask, session, duration_seconds, now=now)
            self._save_subtask(conn, subtask)
            self._save_session(conn, session)
        logger.debug("Subtask paused id=%s seconds=%s", subtask_id, duration_seconds)
        return session

    def resume_subtask(self, subtask_id: str) -> TimeSession:
        now = self._now()
        with self._write() as conn:
            subtask = self._load_subtask(conn, subtask_id)
            session = self._open_session(conn, subtask_id)
            subtask, session = sessions.resume(subtask, session, now=now)
            self._check_single_running(conn, subtask, "resume")
            self._save_subtask(conn, subtask)
            self._save_session(conn, session)
        logger.debug("Subtask resumed id=%s", subtask_id)
        return session

    def complete_subtask(self, subtask_id: str, duration_seconds: int) -> SubtaskCompletion:
        """
        Close the session, fold the submitted seconds into the subtask total and
        book points/XP. The submitted seconds are recorded as-is.
        """
        now = self._now()
        today = utc_day(now)
        with self._write() as conn:
            subtask = self._load_subtask(conn, subtask_id)
            session = self._open_session(conn, subtask_id)
            subtask, session = sessions.complete(subtask, session, duration_seconds, now=now)
            self._save_subtask(conn, subtask)
            self._save_session(conn, session)

            prof = self._load_profile(conn)
            current, longest = scoring.advance_streak(
                prof.current_streak, prof.longest_streak, prof.last_work_date, today
            )
            bonus = scoring.streak_bonus_percentage(current)
            points = scoring.points_for_subtask(duration_seconds)
            xp = scoring.xp_for_duration(duration_seconds, bonus)

            conn.execute(
                """
                UPDATE user_profile
                SET total_xp = total_xp + ?, current_streak = ?, longest_streak = ?, last_work_date = ?
                WHERE id = 1
                """,
                (xp, current, longest, today.isoformat()),
            )
            if subtask.category_id:
                conn.execute(
                    """
                    INSERT INTO category_experience(category_id, total_xp, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(category_id) DO UPDATE
                    SET total_xp = total_xp + excluded.total_xp, updated_at = excluded.updated_at
                    """,
                    (subtask.category_id, xp, to_iso(now)),
                )
            conn.execute(
                """
                INSERT INTO point_ledger(subtask_id, task_id, category_id, points, xp, efficient,
                                         duration_seconds, earned_at, day)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subtask.id,
                    subtask.task_id,
                    subtask.category_id,
                    points,
                    xp,
                    1 if scoring.is_efficient(duration_seconds) else 0,
                    int(duration_seconds),
                    to_iso(now),
                    today.isoformat(),
                ),
            )

        logger.info(
            "Subtask completed id=%s seconds=%s points=%s xp=%s streak=%s",
            subtask_id,
            duration_seconds,
            points,
            xp,
            current,
        )
        return SubtaskCompletion(
            subtask=subtask,
            points_earned=points,
            xp_gained=xp,
            streak_bonus_percentage=bonus,
            time_spent_seconds=int(duration_seconds),
            category=subtask.category,
        )

    def get_subtask_with_session(self, subtask_id: str) -> tuple[Subtask, TimeSession | None]:
        with self._read() as conn:
            return self._load_subtask(conn, subtask_id), self._open_session(conn, subtask_id)

    # ---- metrics ----

    def get_task_metrics(self, task_id: str) -> TaskMetrics:
        with self._read() as conn:
            task = self._load_task(conn, task_id)
            subtasks = self._subtasks_of(conn, task_id)
            row = conn.execute(
                "SELECT COALESCE(SUM(points), 0) AS points, COALESCE(SUM(efficient), 0) AS efficient "
                "FROM point_ledger WHERE task_id = ?",
                (task_id,),
            ).fetchone()

        rollup = aggregator.summarize_task(subtasks)
        total_points = int(row["points"]) + scoring.complexity_bonus(rollup.subtasks_total)
        return TaskMetrics(
            task_id=task.id,
            task_title=task.title,
            total_time_seconds=rollup.total_time_seconds,
            total_points=total_points,
            subtasks_completed=rollup.subtasks_completed,
            subtasks_total=rollup.subtasks_total,
            average_time_per_subtask=rollup.average_time_per_subtask,
            efficiency_rate=aggregator.efficiency_rate(int(row["efficient"]), rollup.subtasks_completed),
            completed_at=task.completed_at or to_iso(self._now()),
            subtasks_with_time=[SubtaskWithTime(subtask=s, total_time_seconds=s.total_time_seconds) for s in subtasks],
        )

    def get_general_metrics(self) -> GeneralMetrics:
        today = utc_day(self._now())
        with self._read() as conn:
            total_points = int(
                conn.execute("SELECT COALESCE(SUM(points), 0) FROM point_ledger").fetchone()[0]
            )
            daily = [
                DailyPoints(date=str(r["day"]), points=int(r["points"]), subtasks_completed=int(r["n"]))
                for r in conn.execute(
                    "SELECT day, SUM(points) AS points, COUNT(*) AS n FROM point_ledger GROUP BY day"
                ).fetchall()
            ]
            tasks_done = int(
                conn.execute(
                    "SELECT COUNT(*) FROM tasks WHERE status = ?", (TaskStatus.DONE.value,)
                ).fetchone()[0]
            )
            sub_row = conn.execute(
                "SELECT COUNT(*) AS n, COALESCE(AVG(total_time_seconds), 0) AS avg_time "
                "FROM subtasks WHERE status = ?",
                (SubtaskStatus.DONE.value,),
            ).fetchone()

        window = aggregator.points_last_7_days(daily, today)
        return GeneralMetrics(
            total_points=total_points,
            points_today=window[-1].points,
            points_this_week=sum(d.points for d in window),
            points_last_7_days=window,
            best_day=aggregator.best_day(window),
            total_tasks_completed=tasks_done,
            total_subtasks_completed=int(sub_row["n"]),
            average_completion_time_seconds=float(sub_row["avg_time"]),
        )

    # ---- categories ----

    def create_category(self, name: str, color: str) -> Category:
        name = (name or "").strip()
        color = (color or "").strip()
        if not name:
            raise ValidationError("category name is required")
        if not color:
            raise ValidationError("category color is required")
        now = to_iso(self._now())
        category = Category(id=str(uuid.uuid4()), name=name, color=color, created_at=now)
        try:
            with self._write() as conn:
                conn.execute(
                    "INSERT INTO categories(id, name, color, created_at) VALUES (?, ?, ?, ?)",
                    (category.id, name, color, now),
                )
                conn.execute(
                    "INSERT INTO category_experience(category_id, total_xp, updated_at) VALUES (?, 0, ?)",
                    (category.id, now),
                )
        except sqlite3.IntegrityError:
            raise ValidationError(f"category already exists: {name}") from None
        return category

    def list_categories(self) -> list[Category]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM categories ORDER BY name ASC").fetchall()
            return [self._row_to_category(r) for r in rows]

    def update_category(self, category_id: str, name: str, color: str) -> Category:
        name = (name or "").strip()
        color = (color or "").strip()
        if not name or not color:
            raise ValidationError("category name and color are required")
        try:
            with self._write() as conn:
                cur = conn.execute(
                    "UPDATE categories SET name = ?, color = ? WHERE id = ?",
                    (name, color, category_id),
                )
                if cur.rowcount == 0:
                    raise NotFound(f"category not found: {category_id}")
                row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
                return self._row_to_category(row)
        except sqlite3.IntegrityError:
            raise ValidationError(f"category already exists: {name}") from None

    def delete_category(self, category_id: str) -> None:
        with self._write() as conn:
            conn.execute("UPDATE subtasks SET category_id = NULL WHERE category_id = ?", (category_id,))
            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))

    def get_category_experience(self, category_id: str) -> CategoryStats:
        with self._read() as conn:
            row = conn.execute(
                """
                SELECT c.*, COALESCE(e.total_xp, 0) AS total_xp
                FROM categories c
                LEFT JOIN category_experience e ON e.category_id = c.id
                WHERE c.id = ?
                """,
                (category_id,),
            ).fetchone()
        if row is None:
            raise NotFound(f"category not found: {category_id}")
        return scoring.category_stats(self._row_to_category(row), int(row["total_xp"]))

    def get_all_category_stats(self) -> list[CategoryStats]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT c.*, COALESCE(e.total_xp, 0) AS total_xp
                FROM categories c
                LEFT JOIN category_experience e ON e.category_id = c.id
                ORDER BY total_xp DESC, c.name ASC
                """
            ).fetchall()
        return [scoring.category_stats(self._row_to_category(r), int(r["total_xp"])) for r in rows]

    # ---- profile ----

    @staticmethod
    def _load_profile(conn: sqlite3.Connection) -> UserProfile:
        row = conn.execute("SELECT * FROM user_profile WHERE id = 1").fetchone()
        if row is None:
            return UserProfile()
        return UserProfile(
            total_xp=int(row["total_xp"] or 0),
            current_streak=int(row["current_streak"] or 0),
            longest_streak=int(row["longest_streak"] or 0),
            last_work_date=row["last_work_date"],
        )

    def get_user_profile(self) -> UserProfile:
        with self._read() as conn:
            return self._load_profile(conn)
