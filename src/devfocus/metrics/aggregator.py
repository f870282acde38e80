# src/devfocus/metrics/aggregator.py

"""
Read-side rollups for the summary windows.

Only time and day-window arithmetic lives here. Points, efficiency rate and the
level math come from the backend ledger and `core.scoring`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from ..core.models import DailyPoints, Subtask, SubtaskStatus

WINDOW_DAYS = 7


@dataclass(slots=True, frozen=True)
class TaskRollup:
    total_time_seconds: int
    subtasks_completed: int
    subtasks_total: int
    average_time_per_subtask: float


def summarize_task(subtasks: Iterable[Subtask]) -> TaskRollup:
    items = list(subtasks)
    done = [s for s in items if s.status == SubtaskStatus.DONE]
    total = sum(int(s.total_time_seconds or 0) for s in done)
    avg = total / len(done) if done else 0.0
    return TaskRollup(
        total_time_seconds=total,
        subtasks_completed=len(done),
        subtasks_total=len(items),
        average_time_per_subtask=avg,
    )


def efficiency_rate(efficient: int, completed: int) -> float:
    """Share of completed subtasks that earned the efficiency bonus, in percent."""
    if completed <= 0:
        return 0.0
    return efficient / completed * 100.0


def points_last_7_days(
    daily_rows: Iterable[DailyPoints] | Mapping[str, DailyPoints],
    today: date,
) -> list[DailyPoints]:
    """
    The 7 contiguous UTC days ending `today` (oldest first), zero-filled.
    Rows outside the window are ignored; duplicate dates are summed.
    """
    rows = daily_rows.values() if isinstance(daily_rows, Mapping) else daily_rows
    by_day: dict[str, tuple[int, int]] = {}
    for row in rows:
        pts, count = by_day.get(row.date, (0, 0))
        by_day[row.date] = (pts + int(row.points), count + int(row.subtasks_completed))

    out: list[DailyPoints] = []
    for offset in range(WINDOW_DAYS - 1, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        pts, count = by_day.get(day, (0, 0))
        out.append(DailyPoints(date=day, points=pts, subtasks_completed=count))
    return out


def best_day(days: Iterable[DailyPoints]) -> DailyPoints | None:
    """Day with the most points (earliest wins ties); None when nothing was earned."""
    best: DailyPoints | None = None
    for day in days:
        if day.points <= 0:
            continue
        if best is None or day.points > best.points:
            best = day
    return best
