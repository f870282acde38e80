# tests/test_bus.py

from __future__ import annotations

import asyncio

import pytest

from devfocus.core.errors import StaleStateRace
from devfocus.sync.bus import WindowSyncBus


@pytest.mark.asyncio
async def test_emit_without_listener_is_not_an_error(bus: WindowSyncBus) -> None:
    assert await bus.emit_to("subtask-tracker", "tracker:load", {"seconds": 1}) is False

    bus.attach("subtask-tracker")
    assert await bus.emit_to("subtask-tracker", "tracker:load", {"seconds": 1}) is False
    await bus.flush()


@pytest.mark.asyncio
async def test_events_arrive_in_emit_order(bus: WindowSyncBus) -> None:
    got: list[int] = []

    async def slow(payload: dict) -> None:
        # earlier events sleep longer; order must still hold
        await asyncio.sleep(0.001 * (5 - payload["n"]))
        got.append(payload["n"])

    bus.listen("main", "tracker:updated", slow)
    for n in range(5):
        assert await bus.emit_to("main", "tracker:updated", {"n": n})
    await bus.flush()

    assert got == [0, 1, 2, 3, 4]
    assert bus.delivered == 5


@pytest.mark.asyncio
async def test_payload_is_copied_not_shared(bus: WindowSyncBus) -> None:
    got: list[dict] = []
    bus.listen("main", "summary:refresh", got.append)

    payload = {"taskId": "t1", "tags": ["a"]}
    await bus.emit_to("main", "summary:refresh", payload)
    payload["tags"].append("mutated")
    await bus.flush()

    assert got == [{"taskId": "t1", "tags": ["a"]}]
    assert got[0] is not payload


@pytest.mark.asyncio
async def test_non_json_payload_is_refused(bus: WindowSyncBus) -> None:
    bus.listen("main", "summary:refresh", lambda p: None)

    assert await bus.emit_to("main", "summary:refresh", {"when": object()}) is False
    await bus.flush()


@pytest.mark.asyncio
async def test_handler_failure_stays_on_the_listener_side(bus: WindowSyncBus) -> None:
    got: list[int] = []

    def handler(payload: dict) -> None:
        if payload["n"] == 0:
            raise RuntimeError("boom")
        got.append(payload["n"])

    bus.listen("main", "tracker:updated", handler)
    assert await bus.emit_to("main", "tracker:updated", {"n": 0})
    assert await bus.emit_to("main", "tracker:updated", {"n": 1})
    await bus.flush()

    assert got == [1]


@pytest.mark.asyncio
async def test_stale_state_race_is_swallowed(bus: WindowSyncBus) -> None:
    def handler(payload: dict) -> None:
        raise StaleStateRace("moved on")

    bus.listen("main", "tracker:updated", handler)
    await bus.emit_to("main", "tracker:updated", {})
    await bus.flush()

    assert bus.delivered == 1


@pytest.mark.asyncio
async def test_unlisten_stops_delivery(bus: WindowSyncBus) -> None:
    got: list[dict] = []
    unlisten = bus.listen("main", "summary:refresh", got.append)
    unlisten()

    assert await bus.emit_to("main", "summary:refresh", {"taskId": "t1"}) is False
    await bus.flush()
    assert got == []


@pytest.mark.asyncio
async def test_broadcast_reaches_every_listening_window(bus: WindowSyncBus) -> None:
    got: list[str] = []
    bus.listen("main", "summary:refresh", lambda p: got.append("main"))
    bus.listen("task-summary", "summary:refresh", lambda p: got.append("task-summary"))
    bus.attach("subtask-tracker")

    assert await bus.emit("summary:refresh", {"taskId": "t1"}) == 2
    await bus.flush()
    assert sorted(got) == ["main", "task-summary"]


@pytest.mark.asyncio
async def test_detach_drops_queued_events(bus: WindowSyncBus) -> None:
    gate = asyncio.Event()
    got: list[int] = []

    async def handler(payload: dict) -> None:
        await gate.wait()
        got.append(payload["n"])

    bus.listen("subtask-tracker", "tracker:load", handler)
    for n in range(3):
        await bus.emit_to("subtask-tracker", "tracker:load", {"n": n})
    # let the worker pick up the first event and block in the handler
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    dropped = bus.detach("subtask-tracker")

    assert dropped == 2
    assert not bus.is_attached("subtask-tracker")
    await asyncio.wait_for(bus.flush(), timeout=1)
    assert got == []
    assert await bus.emit_to("subtask-tracker", "tracker:load", {"n": 9}) is False


@pytest.mark.asyncio
async def test_flush_waits_for_events_emitted_by_handlers(bus: WindowSyncBus) -> None:
    got: list[str] = []

    async def relay(payload: dict) -> None:
        await bus.emit_to("main", "tracker:updated", {"action": "pause"})

    bus.listen("subtask-tracker", "tracker:load", relay)
    bus.listen("main", "tracker:updated", lambda p: got.append(p["action"]))

    await bus.emit_to("subtask-tracker", "tracker:load", {})
    await bus.flush()

    assert got == ["pause"]


@pytest.mark.asyncio
async def test_close_detaches_everything(bus: WindowSyncBus) -> None:
    bus.listen("main", "summary:refresh", lambda p: None)
    bus.listen("task-summary", "summary:load", lambda p: None)

    await bus.close()

    assert not bus.is_attached("main")
    assert not bus.is_attached("task-summary")
