"""Messaging channel contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    PERMANENT_FAILURE = "permanent_failure"
    TRANSIENT_FAILURE = "transient_failure"


class MessagingChannel(ABC):
    """The only delivery surface the pipeline talks to."""

    @abstractmethod
    def send(self, recipient_id: int | str, message: str) -> DeliveryStatus:
        """Deliver one rendered message to one recipient."""

    def close(self) -> None:
        return


__all__ = ["DeliveryStatus", "MessagingChannel"]
