# src/devfocus/cli/console.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from datetime import datetime

from ..core.state import AppState
from .commands import registry as command_registry

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt() -> None:
    print(PROMPT, end="", flush=True)


def _start_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> None:
    """
    Read stdin on a daemon thread; None marks EOF.
    The thread never blocks interpreter exit.
    """

    def _put(item: str | None) -> None:
        # The loop may already be closed when the process is going down.
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(lines.put_nowait, item)

    def _reader() -> None:
        while True:
            try:
                line = input()
            except (EOFError, KeyboardInterrupt):
                _put(None)
                return
            _put(line)

    threading.Thread(target=_reader, name="console-input", daemon=True).start()


async def run_console_loop(state: AppState, *, stop: asyncio.Event | None = None) -> None:
    """Read slash commands until /exit, EOF or `stop` is set. Windows keep running meanwhile."""
    logger.info("Console started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_reader(asyncio.get_running_loop(), lines)

    while stop is None or not stop.is_set():
        _prompt()
        raw = await lines.get()
        if raw is None:
            logger.info("Console EOF received, exiting.")
            print()
            break

        user_input = raw.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = await command_registry.handle(state, user_input, emit=emit)
            # Let cross-window events settle before the next prompt.
            await state.bus.flush()
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue
        print(f"[{_ts_local()}] {response}")

    logger.info("Console finished.")
