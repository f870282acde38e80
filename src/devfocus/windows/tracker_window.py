# src/devfocus/windows/tracker_window.py

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ..core.clock import fmt_hms
from ..core.errors import BackendCallFailure
from ..core.ports import Backend
from ..sync.events import TrackerAction, TrackerClose, TrackerLoad, TrackerUpdated, WindowLabel
from ..sync.windows import WindowManager
from ..timer.engine import TimerEngine

logger = logging.getLogger(__name__)


def _parse_seconds(raw: str | None) -> int:
    if not raw:
        return 0
    try:
        val = float(raw)
    except ValueError:
        return 0
    if val != val or val < 0:
        return 0
    return int(val)


@dataclass(slots=True)
class TrackerWindowState:
    """Tracker-local display state. Never authoritative; replaced on every load."""

    subtask_id: str = ""
    title: str = "Subtask"
    seconds: int = 0
    paused: bool = False
    category_name: str | None = None
    category_color: str | None = None
    loading: bool = False
    error: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> TrackerWindowState:
        return cls(
            subtask_id=params.get("subtaskId", ""),
            title=params.get("title") or "Subtask",
            seconds=_parse_seconds(params.get("seconds")),
            paused=params.get("paused") == "1",
            category_name=params.get("categoryName") or None,
            category_color=params.get("categoryColor") or None,
        )

    @classmethod
    def from_load(cls, load: TrackerLoad) -> TrackerWindowState:
        return cls(
            subtask_id=load.subtask_id,
            title=load.title,
            seconds=load.seconds,
            paused=load.paused,
            category_name=load.category_name,
            category_color=load.category_color,
        )


class TrackerWindowController:
    """
    Floating tracker for the active subtask.

    Runs its own TimerEngine seeded from the bootstrap URL and then from every
    `tracker:load`. Its own pause/resume/done go straight to the backend; main is
    told via `tracker:updated` and refetches on its side.

    Each action remembers the load epoch it started under. If a newer load
    arrived while the backend call was in flight, the result is not applied.
    """

    label = WindowLabel.TRACKER

    def __init__(
        self,
        backend: Backend,
        windows: WindowManager,
        *,
        params: Mapping[str, str] | None = None,
        tick_interval_seconds: float = 1.0,
    ) -> None:
        self.backend = backend
        self.windows = windows
        self.state = TrackerWindowState.from_params(params or {})
        self.timer = TimerEngine(interval_seconds=tick_interval_seconds, on_tick=self._on_tick)
        self._epoch = 0
        self._unlisten: list[Callable[[], None]] = []

    # ---- lifecycle ----

    def attach(self) -> None:
        self._unlisten.append(self.windows.listen(self.label, TrackerLoad, self.on_load))
        self._unlisten.append(self.windows.listen(self.label, TrackerClose, self.on_close))

    async def start(self) -> None:
        self.timer.seed(self.state.seconds, running=not self.state.paused)

    def dispose(self) -> None:
        self.timer.dispose()
        for unlisten in self._unlisten:
            unlisten()
        self._unlisten.clear()

    @property
    def epoch(self) -> int:
        return self._epoch

    # ---- sync handlers ----

    def on_load(self, event: TrackerLoad) -> None:
        self._epoch += 1
        self.state = TrackerWindowState.from_load(event)
        self.timer.seed(event.seconds, running=not event.paused)
        logger.debug("Tracker loaded subtask=%s seconds=%s paused=%s", event.subtask_id, event.seconds, event.paused)

    async def on_close(self, event: TrackerClose) -> None:
        await self.close()

    def _on_tick(self, seconds: int) -> None:
        self.state.seconds = seconds

    # ---- user actions ----

    async def toggle_pause(self) -> None:
        if self.state.paused:
            await self.resume()
        else:
            await self.pause()

    async def pause(self) -> None:
        await self._act(TrackerAction.PAUSE)

    async def resume(self) -> None:
        await self._act(TrackerAction.RESUME)

    async def done(self) -> None:
        await self._act(TrackerAction.DONE)

    async def _act(self, action: TrackerAction) -> None:
        subtask_id = self.state.subtask_id
        if not subtask_id:
            return
        epoch = self._epoch
        seconds = self.timer.seconds
        self.state.loading = True
        self.state.error = None
        try:
            if action == TrackerAction.PAUSE:
                session = await self.backend.pause_subtask(subtask_id, seconds)
            elif action == TrackerAction.RESUME:
                session = await self.backend.resume_subtask(subtask_id)
            else:
                await self.backend.complete_subtask(subtask_id, seconds)
                session = None
        except BackendCallFailure as e:
            if epoch == self._epoch:
                self.state.loading = False
                self.state.error = str(e)
            logger.warning("Tracker %s failed: %s", action, e)
            return

        if epoch != self._epoch:
            logger.debug("Tracker %s result dropped: newer load arrived", action)
        else:
            self.state.loading = False
            if session is not None:
                paused = action == TrackerAction.PAUSE
                self.state.paused = paused
                self.state.seconds = int(session.duration_seconds)
                self.timer.seed(self.state.seconds, running=not paused)

        await self.windows.emit_to(WindowLabel.MAIN, TrackerUpdated(action=action, subtask_id=subtask_id))
        if action == TrackerAction.DONE and epoch == self._epoch:
            await self.close()

    async def close(self) -> None:
        await self.windows.close(self.label)

    # ---- render ----

    def render(self) -> list[str]:
        s = self.state
        status = "paused" if s.paused else "running"
        lines = [s.title, f"{fmt_hms(s.seconds)} ({status})"]
        if s.category_name and s.category_color:
            lines.append(f"{s.category_name} {s.category_color}  +{s.seconds} XP")
        if s.error:
            lines.append(f"! {s.error}")
        return lines
