# src/devfocus/sync/events.py

"""
Named cross-window events and their payloads.

Payloads travel as JSON objects with camelCase keys. Each event class knows its
wire name, so call sites emit/listen with types instead of raw strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar


class WindowLabel(StrEnum):
    MAIN = "main"
    TRACKER = "subtask-tracker"
    TASK_SUMMARY = "task-summary"
    GENERAL_SUMMARY = "general-summary"


class EventName(StrEnum):
    TRACKER_LOAD = "tracker:load"
    TRACKER_UPDATED = "tracker:updated"
    TRACKER_CLOSE = "tracker:close"
    SUMMARY_LOAD = "summary:load"
    SUMMARY_REFRESH = "summary:refresh"


class TrackerAction(StrEnum):
    PAUSE = "pause"
    RESUME = "resume"
    DONE = "done"


class PayloadError(ValueError):
    """Payload does not match the event's shape."""


def _req_str(payload: dict[str, Any], key: str) -> str:
    val = payload.get(key)
    if not isinstance(val, str) or not val:
        raise PayloadError(f"'{key}' must be a non-empty string")
    return val


def _opt_str(payload: dict[str, Any], key: str) -> str | None:
    val = payload.get(key)
    if val is None:
        return None
    if not isinstance(val, str):
        raise PayloadError(f"'{key}' must be a string")
    return val or None


@dataclass(slots=True, frozen=True)
class TrackerLoad:
    NAME: ClassVar[EventName] = EventName.TRACKER_LOAD

    subtask_id: str
    title: str
    seconds: int
    paused: bool
    category_name: str | None = None
    category_color: str | None = None

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "subtaskId": self.subtask_id,
            "title": self.title,
            "seconds": int(self.seconds),
            "paused": bool(self.paused),
        }
        if self.category_name:
            out["categoryName"] = self.category_name
        if self.category_color:
            out["categoryColor"] = self.category_color
        return out

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TrackerLoad:
        secs = payload.get("seconds")
        if isinstance(secs, bool) or not isinstance(secs, (int, float)) or not math.isfinite(secs):
            raise PayloadError("'seconds' must be a number")
        paused = payload.get("paused", False)
        if not isinstance(paused, bool):
            raise PayloadError("'paused' must be a boolean")
        title = payload.get("title")
        return cls(
            subtask_id=_req_str(payload, "subtaskId"),
            title=title if isinstance(title, str) and title else "Subtask",
            seconds=max(0, int(secs)),
            paused=paused,
            category_name=_opt_str(payload, "categoryName"),
            category_color=_opt_str(payload, "categoryColor"),
        )


@dataclass(slots=True, frozen=True)
class TrackerUpdated:
    NAME: ClassVar[EventName] = EventName.TRACKER_UPDATED

    action: TrackerAction
    subtask_id: str

    def to_payload(self) -> dict[str, Any]:
        return {"action": self.action.value, "subtaskId": self.subtask_id}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TrackerUpdated:
        raw = payload.get("action")
        try:
            action = TrackerAction(raw)
        except ValueError:
            raise PayloadError(f"unknown tracker action: {raw!r}") from None
        return cls(action=action, subtask_id=_req_str(payload, "subtaskId"))


@dataclass(slots=True, frozen=True)
class TrackerClose:
    NAME: ClassVar[EventName] = EventName.TRACKER_CLOSE

    def to_payload(self) -> dict[str, Any]:
        return {}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TrackerClose:
        return cls()


@dataclass(slots=True, frozen=True)
class SummaryLoad:
    NAME: ClassVar[EventName] = EventName.SUMMARY_LOAD

    task_id: str

    def to_payload(self) -> dict[str, Any]:
        return {"taskId": self.task_id}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SummaryLoad:
        return cls(task_id=_req_str(payload, "taskId"))


@dataclass(slots=True, frozen=True)
class SummaryRefresh:
    NAME: ClassVar[EventName] = EventName.SUMMARY_REFRESH

    task_id: str

    def to_payload(self) -> dict[str, Any]:
        return {"taskId": self.task_id}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SummaryRefresh:
        return cls(task_id=_req_str(payload, "taskId"))


SyncEvent = TrackerLoad | TrackerUpdated | TrackerClose | SummaryLoad | SummaryRefresh

EVENT_TYPES: dict[EventName, type[SyncEvent]] = {
    EventName.TRACKER_LOAD: TrackerLoad,
    EventName.TRACKER_UPDATED: TrackerUpdated,
    EventName.TRACKER_CLOSE: TrackerClose,
    EventName.SUMMARY_LOAD: SummaryLoad,
    EventName.SUMMARY_REFRESH: SummaryRefresh,
}
