# tests/test_scoring.py

from __future__ import annotations

from datetime import date

import pytest

from devfocus.core import scoring
from devfocus.core.models import Category, UserProfile


@pytest.mark.parametrize("level", range(1, 60))
def test_threshold_and_level_are_inverse(level: int) -> None:
    assert scoring.level_for_xp(scoring.xp_threshold(level)) == level
    if level >= 2:
        assert scoring.level_for_xp(scoring.xp_threshold(level) - 1) == level - 1


def test_level_table() -> None:
    assert scoring.xp_threshold(1) == 0
    assert scoring.xp_threshold(2) == 100
    assert scoring.xp_threshold(5) == 1600
    assert scoring.level_for_xp(0) == 1
    assert scoring.level_for_xp(-50) == 1
    assert scoring.level_for_xp(399) == 2
    assert scoring.level_for_xp(400) == 3
    assert scoring.xp_for_next_level(3) == 900


@pytest.mark.parametrize("level", [1, 2, 7, 25])
def test_progress_bounds(level: int) -> None:
    assert scoring.progress_percentage(scoring.xp_threshold(level), level) == 0
    assert scoring.progress_percentage(scoring.xp_for_next_level(level) - 1, level) < 100
    assert scoring.progress_percentage(scoring.xp_for_next_level(level) + 999, level) == 100
    assert scoring.progress_percentage(0, level + 1) == 0


def test_progress_midpoint() -> None:
    # level 2 spans 100..400
    assert scoring.progress_percentage(250, 2) == pytest.approx(50.0)


@pytest.mark.parametrize(
    ("days", "bonus"),
    [(0, 0), (6, 0), (7, 5), (13, 5), (14, 10), (69, 45), (70, 50), (365, 50), (-3, 0)],
)
def test_streak_bonus(days: int, bonus: int) -> None:
    assert scoring.streak_bonus_percentage(days) == bonus


def test_streak_bonus_is_monotone_and_capped() -> None:
    values = [scoring.streak_bonus_percentage(d) for d in range(0, 200)]
    assert values == sorted(values)
    assert max(values) == scoring.STREAK_BONUS_CAP_PCT


@pytest.mark.parametrize(
    ("days", "milestone"),
    [(0, 7), (6, 7), (7, 14), (29, 30), (30, 60), (99, 100), (100, 100), (500, 100)],
)
def test_next_milestone(days: int, milestone: int) -> None:
    assert scoring.next_milestone(days) == milestone


def test_streak_at_risk() -> None:
    assert scoring.streak_at_risk(None, "2025-03-10")
    assert scoring.streak_at_risk("2025-03-09", "2025-03-10")
    assert not scoring.streak_at_risk("2025-03-10", "2025-03-10")


def test_advance_streak_rules() -> None:
    today = date(2025, 3, 10)

    assert scoring.advance_streak(0, 0, None, today) == (1, 1)
    # same day keeps the count
    assert scoring.advance_streak(4, 9, "2025-03-10", today) == (4, 9)
    # consecutive day extends
    assert scoring.advance_streak(4, 4, "2025-03-09", today) == (5, 5)
    # a gap restarts, longest survives
    assert scoring.advance_streak(12, 12, "2025-03-01", today) == (1, 12)
    # garbage date behaves like no history
    assert scoring.advance_streak(3, 3, "yesterday", today) == (1, 3)


def test_points_for_subtask() -> None:
    assert scoring.points_for_subtask(0) == 15
    assert scoring.points_for_subtask(1499) == 15
    assert scoring.points_for_subtask(1500) == 10
    assert scoring.points_for_subtask(7200) == 10
    assert scoring.is_efficient(60)
    assert not scoring.is_efficient(1500)


def test_complexity_bonus() -> None:
    assert scoring.complexity_bonus(4) == 0
    assert scoring.complexity_bonus(5) == 20
    assert scoring.complexity_bonus(12) == 20


def test_xp_for_duration() -> None:
    assert scoring.xp_for_duration(100, 0) == 100
    assert scoring.xp_for_duration(100, 10) == 110
    assert scoring.xp_for_duration(33, 5) == 34
    assert scoring.xp_for_duration(-5, 50) == 0


def test_summarize_profile() -> None:
    profile = UserProfile(total_xp=250, current_streak=8, longest_streak=20, last_work_date="2025-03-09")

    s = scoring.summarize_profile(profile, "2025-03-10")

    assert s.level == 2
    assert s.xp_for_next_level == 400
    assert s.progress_percentage == pytest.approx(50.0)
    assert s.streak_bonus_percentage == 5
    assert s.next_milestone == 14
    assert s.streak_at_risk is True


def test_category_stats() -> None:
    cat = Category(id="c1", name="backend", color="#10b981")

    stats = scoring.category_stats(cat, 900)

    assert stats.category is cat
    assert stats.level == 4
    assert stats.xp_for_next_level == 1600
    assert stats.progress_percentage == 0
