# src/devfocus/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..sync.bus import WindowSyncBus
from ..sync.events import WindowLabel
from ..sync.windows import WindowManager
from .ports import Backend


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    backend: Backend
    bus: WindowSyncBus
    windows: WindowManager
    # In-process window host (exposes the controller behind each live window).
    host: Any

    def controller(self, label: WindowLabel) -> Any | None:
        return self.host.controller(label)
