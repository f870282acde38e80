# src/devfocus/windows/host.py

"""
In-process window host.

Implements the WindowFactory port: a "window" is a headless controller built from
the `view` in its bootstrap URL, attached to the bus under its label. Controllers
receive only the URL query and the bus; they share no state with each other.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlsplit

from ..core.ports import Backend, Clock
from ..sync.windows import WINDOW_SPECS, WindowManager
from .main_window import MainWindowController
from .summary_window import GeneralSummaryController, TaskSummaryController
from .tracker_window import TrackerWindowController

logger = logging.getLogger(__name__)


class Controller(Protocol):
    def attach(self) -> None: ...
    async def start(self) -> None: ...
    def dispose(self) -> None: ...
    def render(self) -> list[str]: ...


class LocalWindow:
    """WindowHandle over a controller living in this process."""

    def __init__(self, label: str, url: str, controller: Controller) -> None:
        self.label = label
        self.url = url
        self.controller = controller
        self._alive = True
        self.focus_count = 0

    @property
    def is_alive(self) -> bool:
        return self._alive

    async def focus(self) -> None:
        if not self._alive:
            return
        self.focus_count += 1
        on_focus = getattr(self.controller, "on_focus", None)
        if on_focus is not None:
            await on_focus()

    async def close(self) -> None:
        if not self._alive:
            return
        self._alive = False
        self.controller.dispose()


def parse_params(url: str) -> dict[str, str]:
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


class LocalWindowHost:
    def __init__(
        self,
        backend: Backend,
        *,
        tick_interval_seconds: float = 1.0,
        now_fn: Clock | None = None,
    ) -> None:
        self.backend = backend
        self.tick_interval_seconds = tick_interval_seconds
        self._now = now_fn
        self._windows: WindowManager | None = None
        self.windows_by_label: dict[str, LocalWindow] = {}

    def bind(self, windows: WindowManager) -> None:
        self._windows = windows

    def controller(self, label: str) -> Any | None:
        """The controller behind a live window (what a user would be looking at)."""
        window = self.windows_by_label.get(label)
        if window is None or not window.is_alive:
            return None
        return window.controller

    async def create(self, label: str, url: str) -> LocalWindow:
        if self._windows is None:
            raise RuntimeError("LocalWindowHost is not bound to a WindowManager")
        params = parse_params(url)
        view = params.get("view", "")
        controller = self._build(label, view, params)
        controller.attach()
        window = LocalWindow(label, url, controller)
        self.windows_by_label[label] = window
        try:
            await controller.start()
        except Exception:
            window.controller.dispose()
            self.windows_by_label.pop(label, None)
            raise
        logger.debug("Local window created label=%s view=%s", label, view)
        return window

    def _build(self, label: str, view: str, params: dict[str, str]) -> Controller:
        windows = self._windows
        assert windows is not None
        expected = {spec.view: spec.label for spec in WINDOW_SPECS.values()}
        if expected.get(view) != label:
            raise ValueError(f"view '{view}' cannot be hosted under label '{label}'")

        if view == "main":
            return MainWindowController(self.backend, windows, now_fn=self._now)
        if view == "subtask-tracker":
            return TrackerWindowController(
                self.backend,
                windows,
                params=params,
                tick_interval_seconds=self.tick_interval_seconds,
            )
        if view == "task-summary":
            return TaskSummaryController(self.backend, windows, params=params, now_fn=self._now)
        return GeneralSummaryController(self.backend, windows, params=params, now_fn=self._now)
