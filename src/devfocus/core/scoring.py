# src/devfocus/core/scoring.py

"""
Scoring: XP thresholds, levels, streak bonus, completion points.

Pure and deterministic; "today" is always passed in. Every level / progress /
bonus number shown by any window is computed here.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from .models import Category, CategoryStats, ProfileSummary, UserProfile

XP_PER_LEVEL_UNIT = 100
STREAK_BONUS_STEP_DAYS = 7
STREAK_BONUS_STEP_PCT = 5
STREAK_BONUS_CAP_PCT = 50
STREAK_MILESTONES: tuple[int, ...] = (7, 14, 30, 60, 100)

BASE_POINTS = 10
EFFICIENCY_BONUS_POINTS = 5
EFFICIENCY_LIMIT_SECONDS = 1500  # 25 min
COMPLEXITY_BONUS_POINTS = 20
COMPLEXITY_MIN_SUBTASKS = 5


# ---- levels ----


def xp_threshold(level: int) -> int:
    """Total XP needed to reach `level`."""
    return (int(level) - 1) ** 2 * XP_PER_LEVEL_UNIT


def level_for_xp(total_xp: float) -> int:
    """Greatest L >= 1 with xp_threshold(L) <= total_xp."""
    units = math.floor(max(0.0, float(total_xp)) / XP_PER_LEVEL_UNIT)
    return math.isqrt(units) + 1


def xp_for_next_level(level: int) -> int:
    return int(level) ** 2 * XP_PER_LEVEL_UNIT


def progress_percentage(total_xp: float, level: int) -> float:
    floor_xp = xp_threshold(level)
    span = xp_for_next_level(level) - floor_xp
    if span <= 0:
        return 0.0
    pct = (float(total_xp) - floor_xp) / span * 100.0
    return min(100.0, max(0.0, pct))


# ---- streaks ----


def streak_bonus_percentage(streak_days: int) -> int:
    days = max(0, int(streak_days))
    return min((days // STREAK_BONUS_STEP_DAYS) * STREAK_BONUS_STEP_PCT, STREAK_BONUS_CAP_PCT)


def next_milestone(streak_days: int) -> int:
    for m in STREAK_MILESTONES:
        if m > streak_days:
            return m
    return STREAK_MILESTONES[-1]


def streak_at_risk(last_work_date: str | None, today: str) -> bool:
    return last_work_date != today


def advance_streak(
    current: int,
    longest: int,
    last_work_date: str | None,
    today: date,
) -> tuple[int, int]:
    """
    Streak after a completion on `today`:
    same day keeps it, the next day extends it, any gap restarts at 1.
    """
    last: date | None
    try:
        last = date.fromisoformat(last_work_date) if last_work_date else None
    except ValueError:
        last = None

    if last == today:
        new_current = max(1, int(current))
    elif last is not None and last == today - timedelta(days=1):
        new_current = int(current) + 1
    else:
        new_current = 1
    return new_current, max(int(longest), new_current)


# ---- points / xp ----


def points_for_subtask(duration_seconds: int) -> int:
    points = BASE_POINTS
    if duration_seconds < EFFICIENCY_LIMIT_SECONDS:
        points += EFFICIENCY_BONUS_POINTS
    return points


def is_efficient(duration_seconds: int) -> bool:
    return duration_seconds < EFFICIENCY_LIMIT_SECONDS


def complexity_bonus(subtasks_total: int) -> int:
    return COMPLEXITY_BONUS_POINTS if subtasks_total >= COMPLEXITY_MIN_SUBTASKS else 0


def xp_for_duration(duration_seconds: int, bonus_percentage: int) -> int:
    """One XP per tracked second, raised by the streak bonus."""
    base = max(0, int(duration_seconds))
    return base * (100 + max(0, int(bonus_percentage))) // 100


# ---- read models ----


def summarize_profile(profile: UserProfile, today: str) -> ProfileSummary:
    level = level_for_xp(profile.total_xp)
    return ProfileSummary(
        total_xp=profile.total_xp,
        level=level,
        xp_for_next_level=xp_for_next_level(level),
        progress_percentage=progress_percentage(profile.total_xp, level),
        current_streak=profile.current_streak,
        longest_streak=profile.longest_streak,
        streak_bonus_percentage=streak_bonus_percentage(profile.current_streak),
        next_milestone=next_milestone(profile.current_streak),
        streak_at_risk=streak_at_risk(profile.last_work_date, today),
    )


def category_stats(category: Category, total_xp: int) -> CategoryStats:
    level = level_for_xp(total_xp)
    return CategoryStats(
        category=category,
        total_xp=total_xp,
        level=level,
        xp_for_next_level=xp_for_next_level(level),
        progress_percentage=progress_percentage(total_xp, level),
    )
