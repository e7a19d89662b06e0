"""Long-polling update loop for running the bot without a public webhook."""

from __future__ import annotations

import time
from threading import Event
from typing import Any, Callable

import httpx
import structlog

from ..channel.telegram import TelegramChannel, TelegramError
from .commands import CommandHandler
from .dedup import UpdateDeduplicator


class UpdatePoller:
    """Fetch updates with ``getUpdates`` and feed them to the command handler.

    The offset advances past every update returned, including duplicates, so
    Telegram drops them server side on the next call.
    """

    def __init__(
        self,
        channel: TelegramChannel,
        handler: CommandHandler,
        deduplicator: UpdateDeduplicator | None = None,
        poll_timeout: int = 25,
        retry_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.channel = channel
        self.handler = handler
        self.deduplicator = deduplicator or UpdateDeduplicator()
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("notice_watcher.poller")

    def poll_once(self, offset: int | None = None) -> int | None:
        """Handle one batch and return the offset for the next call."""

        updates: list[dict[str, Any]] = self.channel.get_updates(offset=offset, timeout=self.poll_timeout)
        for update in updates:
            update_id = update.get("update_id")
            if update_id is not None:
                offset = max(offset or 0, update_id + 1)
                if not self.deduplicator.check_and_mark(update_id):
                    self.logger.info("update_duplicate", update_id=update_id)
                    continue
            action = self.handler.handle_update(update)
            self.logger.info("update_handled", update_id=update_id, action=action)
        return offset

    def run(self, stop: Event | None = None) -> None:
        stop = stop or Event()
        offset: int | None = None
        self.logger.info("polling_started", timeout=self.poll_timeout)
        while not stop.is_set():
            try:
                offset = self.poll_once(offset)
            except (TelegramError, httpx.HTTPError) as exc:
                self.logger.warning("poll_failed", error=str(exc), retry_in=self.retry_delay)
                self._sleep(self.retry_delay)
        self.logger.info("polling_stopped")


__all__ = ["UpdatePoller"]
