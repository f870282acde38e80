# src/devfocus/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, opens the main window and runs the
console REPL on the asyncio loop until /exit or a signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, open_main_window, shutdown
from ..config import get_settings
from ..logging_setup import setup_logging
from .console import run_console_loop

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) do not support loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        await open_main_window(state)
        console = asyncio.create_task(run_console_loop(state, stop=stop))
        stopper = asyncio.create_task(stop.wait())
        await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
        stopper.cancel()
        if not console.done():
            console.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await console
    finally:
        await shutdown(state)
        logger.info("Bye.")


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/devfocus")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "devfocus"))

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
