# src/devfocus/sync/bus.py

"""
In-process message bus between windows.

Windows never share objects: every payload is serialized to JSON text on emit and
decoded again on delivery. Each (window label, event name) pair owns one FIFO queue
drained by its own worker task, so delivery order is preserved per event name and
a slow handler for one event never blocks another.

Delivery is at-most-once. Emitting to a label that is not attached, or that has no
listener for the event, is not an error: `emit_to` simply returns False.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import StaleStateRace

logger = logging.getLogger(__name__)

Payload = dict[str, Any]
Handler = Callable[[Payload], Awaitable[None] | None]


@dataclass(slots=True)
class _Channel:
    label: str
    event: str
    queue: asyncio.Queue[str] = field(default_factory=asyncio.Queue)
    handlers: list[Handler] = field(default_factory=list)
    worker: asyncio.Task[None] | None = None
    closed: bool = False


class WindowSyncBus:
    def __init__(self) -> None:
        # label -> event name -> channel
        self._endpoints: dict[str, dict[str, _Channel]] = {}
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self.delivered = 0
        self.dropped = 0

    # ---- endpoints ----

    def attach(self, label: str) -> None:
        if label not in self._endpoints:
            self._endpoints[label] = {}
            logger.debug("bus: attached %s", label)

    def detach(self, label: str) -> int:
        """
        Remove a window from the bus. Queued, undelivered events are dropped.
        Returns how many were dropped.
        """
        channels = self._endpoints.pop(label, None)
        if channels is None:
            return 0

        current = asyncio.current_task() if _loop_running() else None
        dropped = 0
        for ch in channels.values():
            ch.closed = True
            ch.handlers.clear()
            while not ch.queue.empty():
                ch.queue.get_nowait()
                dropped += 1
            # A handler may close its own window; let that worker finish normally.
            if ch.worker is not None and ch.worker is not current and not ch.worker.done():
                ch.worker.cancel()

        if dropped:
            self.dropped += dropped
            self._settle(dropped)
        logger.debug("bus: detached %s (dropped=%d)", label, dropped)
        return dropped

    def is_attached(self, label: str) -> bool:
        return label in self._endpoints

    def listen(self, label: str, event: str, handler: Handler) -> Callable[[], None]:
        """Register `handler` for `event` on window `label`. Returns an unlisten callable."""
        self.attach(label)
        channels = self._endpoints[label]
        ch = channels.get(event)
        if ch is None:
            ch = _Channel(label=label, event=event)
            channels[event] = ch
        ch.handlers.append(handler)

        def unlisten() -> None:
            if handler in ch.handlers:
                ch.handlers.remove(handler)

        return unlisten

    # ---- emit ----

    async def emit_to(self, label: str, event: str, payload: Payload | None = None) -> bool:
        """Queue `event` for one window. False when nobody there is listening."""
        ch = self._endpoints.get(label, {}).get(event)
        if ch is None or ch.closed or not ch.handlers:
            logger.debug("bus: no listener for %s on %s", event, label)
            return False

        try:
            text = json.dumps(payload or {}, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("bus: payload for %s is not JSON-serializable", event)
            return False

        self._pending += 1
        self._idle.clear()
        ch.queue.put_nowait(text)
        if ch.worker is None or ch.worker.done():
            ch.worker = asyncio.create_task(self._run(ch), name=f"bus:{label}:{event}")
        return True

    async def emit(self, event: str, payload: Payload | None = None) -> int:
        """Broadcast to every attached window listening for `event`. Returns the count."""
        sent = 0
        for label in list(self._endpoints):
            if await self.emit_to(label, event, payload):
                sent += 1
        return sent

    async def flush(self) -> None:
        """Wait until every queued event (and anything emitted by its handlers) is handled."""
        await self._idle.wait()

    async def close(self) -> None:
        for label in list(self._endpoints):
            self.detach(label)
        # Let cancelled workers unwind.
        await asyncio.sleep(0)

    # ---- delivery ----

    async def _run(self, ch: _Channel) -> None:
        while not ch.closed:
            text = await ch.queue.get()
            try:
                await self._deliver(ch, text)
            finally:
                self._settle(1)

    async def _deliver(self, ch: _Channel, text: str) -> None:
        try:
            payload = json.loads(text)
        except ValueError:
            logger.warning("bus: dropping malformed %s payload for %s", ch.event, ch.label)
            self.dropped += 1
            return

        for handler in list(ch.handlers):
            try:
                res = handler(payload)
                if inspect.isawaitable(res):
                    await res
            except StaleStateRace as e:
                logger.debug("bus: stale %s on %s ignored: %s", ch.event, ch.label, e)
            except Exception:
                logger.exception("bus: %s handler on %s failed", ch.event, ch.label)
        self.delivered += 1

    def _settle(self, n: int) -> None:
        self._pending = max(0, self._pending - n)
        if self._pending == 0:
            self._idle.set()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
