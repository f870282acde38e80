# src/devfocus/sync/windows.py

"""
Window registry.

One live window per fixed label. Opening is idempotent: a live window is focused
(and updated through the bus) instead of duplicated. Opens for the same label are
serialized, so two concurrent opens cannot race into two windows.

Window lifecycle calls are best-effort and never raise into callers. When a window
cannot be created, the view is opened as a plain browser tab instead.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import urlencode

from ..core.errors import WindowOperationFailure
from ..core.ports import WindowFactory, WindowHandle
from .bus import WindowSyncBus
from .events import EVENT_TYPES, EventName, PayloadError, SyncEvent, TrackerLoad, WindowLabel

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=SyncEvent)


@dataclass(frozen=True, slots=True)
class WindowSpec:
    label: WindowLabel
    view: str
    title: str
    width: int
    height: int
    always_on_top: bool = False
    resizable: bool = True


WINDOW_SPECS: dict[WindowLabel, WindowSpec] = {
    WindowLabel.MAIN: WindowSpec(WindowLabel.MAIN, "main", "DevFocus", 1024, 768),
    WindowLabel.TRACKER: WindowSpec(
        WindowLabel.TRACKER, "subtask-tracker", "Subtask Tracker", 340, 260,
        always_on_top=True, resizable=False,
    ),
    WindowLabel.TASK_SUMMARY: WindowSpec(
        WindowLabel.TASK_SUMMARY, "task-summary", "Task Summary", 860, 640,
        always_on_top=True, resizable=False,
    ),
    WindowLabel.GENERAL_SUMMARY: WindowSpec(
        WindowLabel.GENERAL_SUMMARY, "summary", "General Summary", 960, 680,
        always_on_top=True, resizable=False,
    ),
}


def build_url(label: WindowLabel, params: Mapping[str, Any] | None = None, *, base_url: str = "") -> str:
    """`<base>?view=<view>&...` with bootstrap seed fields. None values are skipped."""
    spec = WINDOW_SPECS[label]
    query: dict[str, str] = {"view": spec.view}
    for key, val in (params or {}).items():
        if val is None:
            continue
        if isinstance(val, bool):
            query[key] = "1" if val else "0"
        else:
            query[key] = str(val)
    return f"{base_url}?{urlencode(query)}"


def tracker_params(load: TrackerLoad) -> dict[str, Any]:
    return {
        "subtaskId": load.subtask_id,
        "title": load.title,
        "seconds": load.seconds,
        "paused": load.paused,
        "categoryName": load.category_name,
        "categoryColor": load.category_color,
    }


class WindowManager:
    def __init__(
        self,
        bus: WindowSyncBus,
        factory: WindowFactory,
        *,
        base_url: str = "",
        browser_fallback: bool = True,
        open_browser: Callable[[str], Any] | None = None,
    ) -> None:
        self.bus = bus
        self._factory = factory
        self._base_url = base_url
        self._browser_fallback = browser_fallback
        self._open_browser = open_browser or webbrowser.open
        self._handles: dict[str, WindowHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.fallback_urls: list[str] = []

    # ---- registry ----

    def get(self, label: str) -> WindowHandle | None:
        handle = self._handles.get(label)
        if handle is not None and not handle.is_alive:
            self._forget(label)
            return None
        return handle

    def live_labels(self) -> list[str]:
        return [label for label in list(self._handles) if self.get(label) is not None]

    def _forget(self, label: str) -> None:
        self._handles.pop(label, None)
        self.bus.detach(label)

    def _lock(self, label: str) -> asyncio.Lock:
        lock = self._locks.get(label)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[label] = lock
        return lock

    # ---- lifecycle ----

    async def get_or_create(
        self,
        label: WindowLabel,
        params: Mapping[str, Any] | None = None,
        *,
        focus: bool = True,
    ) -> tuple[WindowHandle, bool] | None:
        """
        Return (handle, created). An existing live window is reused (and focused
        when asked). On creation failure the browser fallback runs and None is returned.
        """
        async with self._lock(label):
            existing = self.get(label)
            if existing is not None:
                if focus:
                    await self.focus(label)
                return existing, False

            url = build_url(label, params, base_url=self._base_url)
            try:
                handle = await self._create(label, url)
            except WindowOperationFailure as e:
                logger.warning("Window open failed, degrading to browser: %s", e)
                self._fallback(url)
                return None

            self._handles[label] = handle
            logger.info("Window opened label=%s", label)
            return handle, True

    async def _create(self, label: str, url: str) -> WindowHandle:
        try:
            return await self._factory.create(label, url)
        except Exception as e:
            raise WindowOperationFailure(label, f"create failed: {e}") from e

    def _fallback(self, url: str) -> None:
        if not self._browser_fallback:
            return
        self.fallback_urls.append(url)
        try:
            self._open_browser(url)
        except Exception:
            logger.exception("Browser fallback failed url=%s", url)

    async def focus(self, label: str) -> bool:
        handle = self.get(label)
        if handle is None:
            return False
        try:
            await handle.focus()
            return True
        except Exception:
            logger.warning("Window focus failed label=%s", label, exc_info=True)
            return False

    async def close(self, label: str) -> bool:
        """Close a window if it is live. Missing windows are not an error."""
        handle = self._handles.get(label)
        if handle is None:
            return False
        try:
            await handle.close()
        except Exception:
            logger.warning("Window close failed label=%s", label, exc_info=True)
        self._forget(label)
        logger.info("Window closed label=%s", label)
        return True

    async def close_all(self) -> None:
        for label in list(self._handles):
            await self.close(label)

    # ---- typed bus wrappers ----

    async def emit_to(self, label: WindowLabel, event: SyncEvent) -> bool:
        try:
            return await self.bus.emit_to(label, event.NAME, event.to_payload())
        except Exception:
            logger.exception("emit %s to %s failed", event.NAME, label)
            return False

    async def emit(self, event: SyncEvent) -> int:
        try:
            return await self.bus.emit(event.NAME, event.to_payload())
        except Exception:
            logger.exception("broadcast %s failed", event.NAME)
            return 0

    def listen(
        self,
        label: WindowLabel,
        event_type: type[E],
        handler: Callable[[E], Awaitable[None] | None],
    ) -> Callable[[], None]:
        """Listen with a typed handler. Payloads that fail to decode are logged and dropped."""
        name: EventName = event_type.NAME

        def _decode(payload: dict[str, Any]) -> Awaitable[None] | None:
            try:
                event = EVENT_TYPES[name].from_payload(payload)
            except PayloadError as e:
                logger.warning("Dropping malformed %s on %s: %s", name, label, e)
                return None
            return handler(event)  # type: ignore[arg-type]

        return self.bus.listen(label, name, _decode)
