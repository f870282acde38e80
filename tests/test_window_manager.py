# tests/test_window_manager.py

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlsplit

import pytest

from devfocus.sync.events import TrackerLoad, WindowLabel
from devfocus.sync.windows import WINDOW_SPECS, WindowManager, build_url, tracker_params

from .fakes import BrowserRecorder, FakeWindowFactory


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


def test_window_specs_cover_every_label() -> None:
    assert set(WINDOW_SPECS) == set(WindowLabel)
    tracker = WINDOW_SPECS[WindowLabel.TRACKER]
    assert (tracker.width, tracker.height) == (340, 260)
    assert tracker.always_on_top
    assert WINDOW_SPECS[WindowLabel.GENERAL_SUMMARY].view == "summary"


def test_build_url_encodes_tracker_seed() -> None:
    load = TrackerLoad(subtask_id="s1", title="Fix bug", seconds=42, paused=True, category_name="css")

    url = build_url(WindowLabel.TRACKER, tracker_params(load), base_url="http://localhost:1420/")

    assert url.startswith("http://localhost:1420/?")
    q = _query(url)
    assert q["view"] == ["subtask-tracker"]
    assert q["subtaskId"] == ["s1"]
    assert q["seconds"] == ["42"]
    assert q["paused"] == ["1"]
    assert q["categoryName"] == ["css"]
    assert "categoryColor" not in q


@pytest.mark.asyncio
async def test_get_or_create_is_idempotent(windows: WindowManager, factory: FakeWindowFactory) -> None:
    first = await windows.get_or_create(WindowLabel.TASK_SUMMARY, {"taskId": "t1"})
    second = await windows.get_or_create(WindowLabel.TASK_SUMMARY, {"taskId": "t2"})

    assert first is not None and second is not None
    assert first[1] is True
    assert second[1] is False
    assert first[0] is second[0]
    assert len(factory.created) == 1
    assert factory.created[0].focus_count == 1
    assert windows.live_labels() == [WindowLabel.TASK_SUMMARY]


@pytest.mark.asyncio
async def test_concurrent_opens_create_one_window(windows: WindowManager, factory: FakeWindowFactory) -> None:
    factory.gate = asyncio.Event()

    a = asyncio.create_task(windows.get_or_create(WindowLabel.TRACKER))
    b = asyncio.create_task(windows.get_or_create(WindowLabel.TRACKER))
    await asyncio.sleep(0)
    factory.gate.set()
    ra, rb = await asyncio.gather(a, b)

    assert len(factory.created) == 1
    assert ra is not None and rb is not None
    assert sorted([ra[1], rb[1]]) == [False, True]


@pytest.mark.asyncio
async def test_creation_failure_falls_back_to_browser(
    windows: WindowManager, factory: FakeWindowFactory, browser: BrowserRecorder
) -> None:
    factory.fail_labels.add(WindowLabel.GENERAL_SUMMARY)

    opened = await windows.get_or_create(WindowLabel.GENERAL_SUMMARY)

    assert opened is None
    assert windows.get(WindowLabel.GENERAL_SUMMARY) is None
    assert len(browser.urls) == 1
    assert _query(browser.urls[0])["view"] == ["summary"]
    assert windows.fallback_urls == browser.urls


@pytest.mark.asyncio
async def test_browser_failure_is_swallowed(
    windows: WindowManager, factory: FakeWindowFactory, browser: BrowserRecorder
) -> None:
    factory.fail_labels.add(WindowLabel.TRACKER)
    browser.fail = True

    assert await windows.get_or_create(WindowLabel.TRACKER) is None
    assert len(windows.fallback_urls) == 1


@pytest.mark.asyncio
async def test_fallback_can_be_disabled(bus, factory: FakeWindowFactory, browser: BrowserRecorder) -> None:
    manager = WindowManager(bus, factory, browser_fallback=False, open_browser=browser)
    factory.fail_labels.add(WindowLabel.MAIN)

    assert await manager.get_or_create(WindowLabel.MAIN) is None
    assert browser.urls == []


@pytest.mark.asyncio
async def test_dead_window_is_recreated(windows: WindowManager, factory: FakeWindowFactory) -> None:
    await windows.get_or_create(WindowLabel.TRACKER)
    factory.created[0].alive = False

    assert windows.get(WindowLabel.TRACKER) is None
    opened = await windows.get_or_create(WindowLabel.TRACKER)

    assert opened is not None and opened[1] is True
    assert len(factory.created) == 2


@pytest.mark.asyncio
async def test_close_detaches_from_bus(windows: WindowManager, factory: FakeWindowFactory) -> None:
    await windows.get_or_create(WindowLabel.TRACKER)
    windows.bus.listen(WindowLabel.TRACKER, "tracker:load", lambda p: None)

    assert await windows.close(WindowLabel.TRACKER) is True
    assert not factory.created[0].is_alive
    assert not windows.bus.is_attached(WindowLabel.TRACKER)
    assert await windows.close(WindowLabel.TRACKER) is False


@pytest.mark.asyncio
async def test_typed_listen_drops_malformed_payloads(windows: WindowManager) -> None:
    got: list[TrackerLoad] = []
    windows.listen(WindowLabel.TRACKER, TrackerLoad, got.append)

    await windows.bus.emit_to(WindowLabel.TRACKER, "tracker:load", {"title": "no id", "seconds": 3})
    await windows.bus.emit_to(WindowLabel.TRACKER, "tracker:load", {"subtaskId": "s1", "seconds": "x"})
    await windows.emit_to(WindowLabel.TRACKER, TrackerLoad(subtask_id="s1", title="ok", seconds=3, paused=False))
    await windows.bus.flush()

    assert got == [TrackerLoad(subtask_id="s1", title="ok", seconds=3, paused=False)]
