"""Long-polling loop feeding Bot API updates to the admin commands."""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .bot_commands import AdminCommands
from .telegram import TelegramGateway, TelegramGatewayError

logger = logging.getLogger(__name__)


class BotPoller:
    def __init__(
        self,
        gateway: TelegramGateway,
        commands: AdminCommands,
        *,
        poll_timeout: int = 25,
        backoff_s: float = 2.0,
    ) -> None:
        self._gateway = gateway
        self._commands = commands
        self._poll_timeout = poll_timeout
        self._backoff = backoff_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.offset = 0

    def poll_once(self) -> int:
        """Fetch one batch, dispatch it and advance the offset; returns the update count."""

        updates = self._gateway.get_updates(self.offset, self._poll_timeout)
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self.offset = max(self.offset, update_id + 1)
            try:
                self._commands.handle_update(update)
            except Exception as exc:  # noqa: BLE001
                logger.error("Update %s handling failed: %s", update_id, exc)
        return len(updates)

    def run(self) -> None:
        logger.info("Bot polling started")
        while not self._stop.is_set():
            try:
                self.poll_once()
            except TelegramGatewayError as exc:
                logger.error("Bot polling error: %s", exc)
                self._stop.wait(self._backoff)
        logger.info("Bot polling stopped")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="bot-poller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()


__all__ = ["BotPoller"]
