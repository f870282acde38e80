# src/devfocus/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "devfocus.log"

# Background components that log on every tick / delivery.
QUIET_LOGGERS: tuple[str, ...] = (
    "devfocus.timer",
    "devfocus.sync.bus",
    "devfocus.windows.host",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console prompt readable while windows run in the background.

    devfocus records pass, except the quiet components below WARNING.
    Everything else (third-party, captured py.warnings) needs ERROR+.
    """

    def __init__(self, quiet: Iterable[str] = QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "devfocus" or name.startswith("devfocus."):
            if any(name == q or name.startswith(q + ".") for q in self._quiet):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/devfocus",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console handler (filtered) plus a rotating file with everything.
    Replaces existing root handlers, so call it once at startup. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # asyncio reports slow callbacks at WARNING; the file log is enough for those.
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    return log_file
