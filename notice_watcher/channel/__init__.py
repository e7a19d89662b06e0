"""Messaging channel adapters."""

from .base import DeliveryStatus, MessagingChannel
from .telegram import TelegramChannel, TelegramError

__all__ = ["DeliveryStatus", "MessagingChannel", "TelegramChannel", "TelegramError"]
