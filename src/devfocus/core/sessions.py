# src/devfocus/core/sessions.py

"""
Subtask session state machine.

    todo -> in_progress -> {paused <-> in_progress} -> done

Each transition is a pure function over (Subtask, TimeSession) returning the new
pair; persistence belongs to the backend. The elapsed-seconds values accepted by
pause/complete are trusted as submitted by the caller: a client that stalls and
resubmits an old value is indistinguishable from a short session.

`displayed_total` is the one reconstruction formula every window uses to show or
submit a "current total".
"""

from __future__ import annotations

import math
import uuid
from dataclasses import replace
from datetime import datetime

from .clock import parse_iso, to_iso
from .errors import InvalidTransition, ValidationError
from .models import Subtask, SubtaskStatus, TimeSession

# action -> (allowed source statuses, target status)
TRANSITIONS: dict[str, tuple[frozenset[SubtaskStatus], SubtaskStatus]] = {
    "start": (frozenset({SubtaskStatus.TODO}), SubtaskStatus.IN_PROGRESS),
    "pause": (frozenset({SubtaskStatus.IN_PROGRESS}), SubtaskStatus.PAUSED),
    "resume": (frozenset({SubtaskStatus.PAUSED}), SubtaskStatus.IN_PROGRESS),
    "complete": (
        frozenset({SubtaskStatus.IN_PROGRESS, SubtaskStatus.PAUSED}),
        SubtaskStatus.DONE,
    ),
}


def check_transition(action: str, status: SubtaskStatus) -> SubtaskStatus:
    """Return the target status for `action` from `status`, or raise InvalidTransition."""
    try:
        allowed, target = TRANSITIONS[action]
    except KeyError:
        raise ValidationError(f"unknown action: {action}") from None
    if status not in allowed:
        raise InvalidTransition(action, str(status))
    return target


def _check_seconds(observed_seconds: int) -> int:
    if isinstance(observed_seconds, bool) or not isinstance(observed_seconds, int):
        raise ValidationError("elapsed seconds must be an integer")
    if observed_seconds < 0:
        raise ValidationError("elapsed seconds must be >= 0")
    return observed_seconds


def _require_open(session: TimeSession | None, subtask: Subtask, action: str) -> TimeSession:
    if session is None or not session.is_open:
        raise InvalidTransition(action, f"{subtask.status} (no open session)")
    return session


def start(
    subtask: Subtask,
    *,
    now: datetime,
    session_id: str | None = None,
) -> tuple[Subtask, TimeSession]:
    target = check_transition("start", subtask.status)
    ts = to_iso(now)
    session = TimeSession(
        id=session_id or str(uuid.uuid4()),
        subtask_id=subtask.id,
        started_at=ts,
        duration_seconds=0,
    )
    return replace(subtask, status=target, updated_at=ts), session


def pause(
    subtask: Subtask,
    session: TimeSession | None,
    observed_seconds: int,
    *,
    now: datetime,
) -> tuple[Subtask, TimeSession]:
    target = check_transition("pause", subtask.status)
    session = _require_open(session, subtask, "pause")
    seconds = _check_seconds(observed_seconds)
    ts = to_iso(now)
    return (
        replace(subtask, status=target, updated_at=ts),
        replace(session, paused_at=ts, duration_seconds=seconds),
    )


def resume(
    subtask: Subtask,
    session: TimeSession | None,
    *,
    now: datetime,
) -> tuple[Subtask, TimeSession]:
    target = check_transition("resume", subtask.status)
    session = _require_open(session, subtask, "resume")
    ts = to_iso(now)
    return replace(subtask, status=target, updated_at=ts), replace(session, resumed_at=ts)


def complete(
    subtask: Subtask,
    session: TimeSession | None,
    observed_seconds: int,
    *,
    now: datetime,
) -> tuple[Subtask, TimeSession]:
    target = check_transition("complete", subtask.status)
    session = _require_open(session, subtask, "complete")
    seconds = _check_seconds(observed_seconds)
    ts = to_iso(now)
    closed = replace(session, ended_at=ts, duration_seconds=seconds)
    done = replace(
        subtask,
        status=target,
        updated_at=ts,
        completed_at=ts,
        total_time_seconds=int(subtask.total_time_seconds or 0) + seconds,
    )
    return done, closed


def live_elapsed(status: SubtaskStatus, session: TimeSession | None, now: datetime) -> int:
    """Whole seconds since the last resume (or start); 0 unless in progress."""
    if session is None or status != SubtaskStatus.IN_PROGRESS:
        return 0
    reference = parse_iso(session.resumed_at) or parse_iso(session.started_at)
    if reference is None:
        return 0
    return max(0, math.floor((now - reference).total_seconds()))


def displayed_total(subtask: Subtask, session: TimeSession | None, now: datetime) -> int:
    base = int(subtask.total_time_seconds or 0)
    if session is None:
        return base
    return base + int(session.duration_seconds or 0) + live_elapsed(subtask.status, session, now)
