# src/devfocus/timer/engine.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TimerSnapshot:
    seconds: int
    is_running: bool


class TimerEngine:
    """
    Per-window ticking counter (rendering convenience, never the source of truth).

    While running, a one-shot callback is armed on the event loop and re-arms
    itself after every tick. `seed()` replaces the value whenever an
    authoritative one arrives; drift is corrected only by the next seed.
    """

    def __init__(
        self,
        *,
        interval_seconds: float = 1.0,
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        self.interval_seconds = max(0.001, float(interval_seconds))
        self._on_tick = on_tick
        self._seconds = 0
        self._running = False
        self._handle: asyncio.TimerHandle | None = None

    # ---- state ----

    @property
    def seconds(self) -> int:
        return self._seconds

    @property
    def is_running(self) -> bool:
        return self._running

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(seconds=self._seconds, is_running=self._running)

    # ---- control ----

    def seed(self, seconds: int, *, running: bool) -> None:
        self._seconds = max(0, int(seconds))
        self.set_running(running)

    def set_running(self, running: bool) -> None:
        self._running = bool(running)
        if self._running:
            self._arm()
        else:
            self._disarm()

    def tick(self) -> int:
        """Advance by one second if running. Returns the current value."""
        if not self._running:
            return self._seconds
        self._seconds += 1
        if self._on_tick is not None:
            try:
                self._on_tick(self._seconds)
            except Exception:
                logger.exception("on_tick callback failed")
        return self._seconds

    def dispose(self) -> None:
        self._running = False
        self._disarm()

    # ---- loop plumbing ----

    def _arm(self) -> None:
        if self._handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync caller): counter stays frozen until driven by tick().
            logger.debug("TimerEngine armed without a running loop; manual ticks only")
            return
        self._handle = loop.call_later(self.interval_seconds, self._tick_once)

    def _disarm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick_once(self) -> None:
        self._handle = None
        if not self._running:
            return
        self.tick()
        self._arm()
