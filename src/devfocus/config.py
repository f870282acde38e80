# src/devfocus/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is required at import time; every value has a local default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DEVFOCUS"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Timer / backend ----
    tick_interval_seconds: float
    backend_timeout_seconds: float | None

    # ---- Windows ----
    browser_fallback: bool
    fallback_base_url: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "devfocus").strip() or "devfocus"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/devfocus"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "devfocus.sqlite3")

        tick = _env_float(_k("TICK_INTERVAL_SECONDS"), 1.0) or 1.0
        # No client-side timeout unless explicitly configured.
        timeout = _env_float(_k("BACKEND_TIMEOUT_SECONDS"), None)
        if timeout is not None and timeout <= 0:
            timeout = None

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            tick_interval_seconds=max(0.01, tick),
            backend_timeout_seconds=timeout,
            browser_fallback=_env_bool(_k("BROWSER_FALLBACK"), True),
            fallback_base_url=_env(_k("FALLBACK_BASE_URL"), "http://localhost:1420/"),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
