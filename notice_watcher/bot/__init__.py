"""Telegram bot command handling."""

from .commands import CommandHandler, preference_keyboard, preference_status
from .dedup import UpdateDeduplicator
from .poller import UpdatePoller

__all__ = ["CommandHandler", "UpdateDeduplicator", "UpdatePoller", "preference_keyboard", "preference_status"]
