# src/taskbell/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

from ..cli.bootstrap import add_delivery_listener
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


CONSOLE_PROMPT = ">>> "


class _ConsoleOutput:
    """Prints lines stamped with the display-timezone clock (weekday + time)."""

    def __init__(self, state: AppState) -> None:
        self._clock = state.clock

    def stamp(self) -> str:
        return self._clock.now().strftime("%a %H:%M:%S")

    def line(self, text: str) -> None:
        print(f"[{self.stamp()}] {text}", flush=True)

    def echo_input(self, text: str) -> None:
        """Redraw the prompt line with a timestamp (TTY only)."""
        if not sys.stdout.isatty():
            return
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(f"[{self.stamp()}] {CONSOLE_PROMPT}{text}\n")
        sys.stdout.flush()

    async def alert(self, data: dict[str, Any]) -> None:
        title = data.get("title") or "Notification"
        body = data.get("body") or ""
        self.line(f"[ALERT] {title}: {body}")


async def run_console_loop(state: AppState) -> None:
    """
    Line-based console shell. Input is read in a worker thread so scheduled alerts
    keep firing on the event loop while the prompt waits.
    """
    out = _ConsoleOutput(state)
    logger.info("Console connector started (tz=%s).", state.clock.timezone_name)
    out.line(f"[CONSOLE] Times are {state.clock.timezone_name}. Use /help for commands, /exit to quit.\n")

    add_delivery_listener(state, out.alert)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, CONSOLE_PROMPT)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        out.echo_input(user_input)
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = await command_registry.handle(state, user_input, emit=out.line)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Not a command. Use /help to list available commands."
        out.line(response)

    logger.info("Console connector finished.")
