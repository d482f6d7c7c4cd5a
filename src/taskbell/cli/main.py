# src/taskbell/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- the alert platform (APScheduler) and the periodic status sweeper in the background,
- the console shell in the foreground (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..tasks.sweeper import run_status_sweeper
from ..tasks.task_api import request_notification_permissions

logger = logging.getLogger(__name__)


async def run_app(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    # AsyncIOScheduler binds to the running loop, so start it from inside the coroutine.
    start = getattr(state.platform, "start", None)
    if callable(start):
        start()

    await request_notification_permissions(state)
    await state.sweeper.on_resume()

    sweeper_task = asyncio.create_task(
        run_status_sweeper(state.sweeper, interval_seconds=settings.sweep_interval_seconds),
        name="status-sweeper",
    )

    # Use an Event so main can wait without a busy loop.
    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state), name="console")
            waiter = asyncio.create_task(stop_main.wait(), name="stop-wait")
            done, pending = await asyncio.wait({console, waiter}, return_when=asyncio.FIRST_COMPLETED)
            for t in pending:
                t.cancel()
        else:
            logger.info("Console disabled. Running alerts and sweeper only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task

        shutdown_state(state)
        logger.info("Bye.")


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_file = setup_logging(
        log_dir=settings.data_dir,
        console_level=console_level,
        timezone_name=settings.display_timezone,
    )
    logger.info("Starting %s (log file %s)...", getattr(settings, "app_name", "taskbell"), log_file)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_app(settings))


if __name__ == "__main__":
    main()
