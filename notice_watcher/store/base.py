"""Persistence contracts for source state, subscribers and the event log."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..config import SourceKind, Topic


class StoreError(RuntimeError):
    """Raised when the persistence backend fails to read or write."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_preferences() -> dict[Topic, bool]:
    return {topic: True for topic in Topic}


@dataclass(slots=True)
class MonitoredSource:
    """Last known state of one monitored page."""

    kind: SourceKind
    url: str
    last_fingerprint: str | None
    last_checked_at: datetime | None = None
    last_changed_at: datetime | None = None


@dataclass(slots=True)
class Subscriber:
    """A notification recipient addressed by its channel chat id."""

    id: int | str
    active: bool = True
    preferences: dict[Topic, bool] = field(default_factory=default_preferences)
    subscribed_at: datetime | None = None
    username: str | None = None
    first_name: str | None = None

    def wants(self, topic: Topic) -> bool:
        return self.preferences.get(Topic(topic), True) is True


def coerce_preferences(raw: dict[str, Any] | None) -> dict[Topic, bool]:
    """Fill missing topics with the all-true default."""

    prefs = default_preferences()
    for key, value in (raw or {}).items():
        try:
            prefs[Topic(key)] = bool(value)
        except ValueError:
            continue
    return prefs


class SourceStateStore(ABC):
    """Exclusive owner of MonitoredSource records."""

    @abstractmethod
    def get_source(self, kind: SourceKind) -> MonitoredSource | None:
        """Return the stored record or ``None`` before the first check."""

    @abstractmethod
    def insert_if_absent(self, source: MonitoredSource) -> bool:
        """Create the record; return ``False`` when one already exists."""

    @abstractmethod
    def compare_and_set(
        self,
        kind: SourceKind,
        expected: str | None,
        new: str,
        checked_at: datetime,
    ) -> bool:
        """Atomically replace the fingerprint if it still equals ``expected``."""

    @abstractmethod
    def touch(self, kind: SourceKind, checked_at: datetime) -> None:
        """Update only the last-checked timestamp."""

    @abstractmethod
    def list_sources(self) -> list[MonitoredSource]:
        """Return every stored source record."""


class SubscriberDirectory(ABC):
    """Subscriber lookups and the narrow set of mutations the pipeline needs."""

    @abstractmethod
    def list_active(self, topic: Topic | None = None) -> list[Subscriber]:
        """Return active subscribers, optionally only those opted into ``topic``."""

    @abstractmethod
    def get_subscriber(self, subscriber_id: int | str) -> Subscriber | None:
        ...

    @abstractmethod
    def set_active(self, subscriber_id: int | str, active: bool) -> None:
        ...

    @abstractmethod
    def upsert(self, subscriber: Subscriber) -> bool:
        """Activate or create a subscriber, keeping existing preferences.

        Returns ``True`` when the subscriber did not exist before.
        """

    @abstractmethod
    def set_preference(self, subscriber_id: int | str, topic: Topic, enabled: bool) -> Subscriber | None:
        ...

    @abstractmethod
    def list_subscribers(self) -> list[Subscriber]:
        ...


class EventLog(ABC):
    """Append-only audit trail of pipeline and bot events."""

    @abstractmethod
    def record(self, event_type: str, data: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        ...


class StateBackend(SourceStateStore, SubscriberDirectory, EventLog):
    """A single backend serving all three contracts."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = [
    "EventLog",
    "MonitoredSource",
    "SourceStateStore",
    "StateBackend",
    "StoreError",
    "Subscriber",
    "SubscriberDirectory",
    "coerce_preferences",
    "default_preferences",
    "utcnow",
]
