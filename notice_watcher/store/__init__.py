"""Persistence contracts and backends."""

from .base import (
    EventLog,
    MonitoredSource,
    SourceStateStore,
    StateBackend,
    StoreError,
    Subscriber,
    SubscriberDirectory,
    coerce_preferences,
    default_preferences,
)
from .factory import StoreFactory
from .sqlite_store import SQLiteStateStore

__all__ = [
    "EventLog",
    "MonitoredSource",
    "SQLiteStateStore",
    "SourceStateStore",
    "StateBackend",
    "StoreError",
    "StoreFactory",
    "Subscriber",
    "SubscriberDirectory",
    "coerce_preferences",
    "default_preferences",
]
