# tests/test_bootstrap.py

from __future__ import annotations

import logging

import pytest

from devfocus.cli.bootstrap import create_initial_state, open_main_window, shutdown
from devfocus.logging_setup import _ConsoleNoiseFilter, setup_logging
from devfocus.sync.events import WindowLabel
from devfocus.windows.main_window import MainWindowController


@pytest.mark.asyncio
async def test_bootstrap_opens_main_and_shuts_down(settings) -> None:
    state = create_initial_state(settings=settings)

    assert settings.db_path.parent.is_dir()
    assert await open_main_window(state) is True
    assert isinstance(state.controller(WindowLabel.MAIN), MainWindowController)

    await shutdown(state)

    assert state.windows.live_labels() == []
    assert not state.bus.is_attached(WindowLabel.MAIN)


def test_setup_logging_writes_file(tmp_path) -> None:
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    asyncio_level = logging.getLogger("asyncio").level
    try:
        log_file = setup_logging(log_dir=tmp_path, console_level=logging.WARNING)
        logging.getLogger("devfocus.test").info("hello file")
        for h in root.handlers:
            h.flush()
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.getLogger("asyncio").setLevel(asyncio_level)
        logging.captureWarnings(False)

    assert log_file == tmp_path / "devfocus.log"
    assert "hello file" in log_file.read_text(encoding="utf-8")


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_quiets_background_components() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("devfocus.windows.main_window", logging.INFO))
    assert not f.filter(_record("devfocus.timer.engine", logging.DEBUG))
    assert f.filter(_record("devfocus.sync.bus", logging.WARNING))
    assert f.filter(_record("devfocus.sync.buster", logging.INFO))
    assert not f.filter(_record("urllib3", logging.WARNING))
    assert f.filter(_record("py.warnings", logging.ERROR))
