# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from devfocus.backend.client import BackendClient
from devfocus.backend.store import SQLiteBackend
from devfocus.core.state import AppState
from devfocus.sync.bus import WindowSyncBus
from devfocus.sync.windows import WindowManager
from devfocus.windows.host import LocalWindowHost

from .fakes import BrowserRecorder, FakeClock, FakeWindowFactory, GatedBackend


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="devfocus-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "devfocus.sqlite3",
        # Long interval: timers only move when a test ticks them.
        tick_interval_seconds=3600.0,
        backend_timeout_seconds=None,
        browser_fallback=True,
        fallback_base_url="http://localhost:1420/",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(settings: SimpleNamespace, clock: FakeClock) -> SQLiteBackend:
    return SQLiteBackend(settings.db_path, now_fn=clock)


@pytest.fixture()
def backend(store: SQLiteBackend) -> BackendClient:
    return BackendClient(store)


@pytest.fixture()
def gated(backend: BackendClient) -> GatedBackend:
    return GatedBackend(backend)


@pytest.fixture()
def bus() -> WindowSyncBus:
    return WindowSyncBus()


@pytest.fixture()
def browser() -> BrowserRecorder:
    return BrowserRecorder()


@pytest.fixture()
def factory() -> FakeWindowFactory:
    return FakeWindowFactory()


@pytest.fixture()
def windows(bus: WindowSyncBus, factory: FakeWindowFactory, browser: BrowserRecorder) -> WindowManager:
    """WindowManager over fake windows (no controllers behind them)."""
    return WindowManager(bus, factory, base_url="http://localhost:1420/", open_browser=browser)


@pytest.fixture()
def app(
    settings: SimpleNamespace,
    gated: GatedBackend,
    clock: FakeClock,
    browser: BrowserRecorder,
) -> AppState:
    """
    AppState wired like the real bootstrap, with in-process windows.

    NOTE: We keep a real SQLite backend here; every window talks to it through
    the GatedBackend so tests can hold or fail individual commands.
    """
    bus = WindowSyncBus()
    host = LocalWindowHost(gated, tick_interval_seconds=settings.tick_interval_seconds, now_fn=clock)
    windows = WindowManager(bus, host, base_url=settings.fallback_base_url, open_browser=browser)
    host.bind(windows)
    return AppState(settings=settings, backend=gated, bus=bus, windows=windows, host=host)
