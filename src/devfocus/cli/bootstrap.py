# src/devfocus/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the backend, the sync bus, the window manager and the in-process
  window host into AppState.
"""

from __future__ import annotations

import logging

from ..backend.client import BackendClient
from ..backend.store import SQLiteBackend
from ..config import get_settings
from ..core.state import AppState
from ..sync.bus import WindowSyncBus
from ..sync.events import WindowLabel
from ..sync.windows import WindowManager
from ..windows.host import LocalWindowHost

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = SQLiteBackend(settings.db_path)
    backend = BackendClient(store, timeout_seconds=settings.backend_timeout_seconds)
    bus = WindowSyncBus()
    host = LocalWindowHost(backend, tick_interval_seconds=settings.tick_interval_seconds)
    windows = WindowManager(
        bus,
        host,
        base_url=settings.fallback_base_url,
        browser_fallback=settings.browser_fallback,
    )
    host.bind(windows)

    return AppState(settings=settings, backend=backend, bus=bus, windows=windows, host=host)


async def open_main_window(state: AppState) -> bool:
    opened = await state.windows.get_or_create(WindowLabel.MAIN, focus=True)
    if opened is None:
        logger.warning("Main window could not be opened.")
        return False
    return True


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.windows.close_all()
    except Exception:
        logger.exception("Failed to close windows.")

    try:
        await state.bus.close()
    except Exception:
        logger.debug("Bus close failed.", exc_info=True)
