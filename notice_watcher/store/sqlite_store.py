"""SQLite implementation of the state backend."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Iterator

from ..config import SourceKind, Topic
from ..infra.storage import SQLiteManager
from .base import (
    MonitoredSource,
    StateBackend,
    StoreError,
    Subscriber,
    coerce_preferences,
    utcnow,
)


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _restore_id(raw: str) -> int | str:
    return int(raw) if raw.lstrip("-").isdigit() else raw


def _dump_preferences(preferences: dict[Topic, bool]) -> str:
    return json.dumps({Topic(key).value: bool(value) for key, value in preferences.items()}, sort_keys=True)


class SQLiteStateStore(StateBackend):
    """Persist sources, subscribers and events in one SQLite file."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(f"SQLite operation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Source state
    # ------------------------------------------------------------------
    def get_source(self, kind: SourceKind) -> MonitoredSource | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM sources WHERE kind = ?", (SourceKind(kind).value,)).fetchone()
        return self._row_to_source(row) if row else None

    def insert_if_absent(self, source: MonitoredSource) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO sources(kind, url, fingerprint, last_checked_at, last_changed_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    source.kind.value,
                    source.url,
                    source.last_fingerprint,
                    _to_text(source.last_checked_at),
                    _to_text(source.last_changed_at),
                ),
            )
            return cur.rowcount == 1

    def compare_and_set(
        self,
        kind: SourceKind,
        expected: str | None,
        new: str,
        checked_at: datetime,
    ) -> bool:
        stamp = _to_text(checked_at)
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE sources SET fingerprint = ?, last_checked_at = ?, last_changed_at = ? "
                "WHERE kind = ? AND fingerprint IS ?",
                (new, stamp, stamp, SourceKind(kind).value, expected),
            )
            return cur.rowcount == 1

    def touch(self, kind: SourceKind, checked_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE sources SET last_checked_at = ? WHERE kind = ?",
                (_to_text(checked_at), SourceKind(kind).value),
            )

    def list_sources(self) -> list[MonitoredSource]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM sources ORDER BY kind").fetchall()
        return [self._row_to_source(row) for row in rows]

    @staticmethod
    def _row_to_source(row: sqlite3.Row) -> MonitoredSource:
        return MonitoredSource(
            kind=SourceKind(row["kind"]),
            url=row["url"],
            last_fingerprint=row["fingerprint"],
            last_checked_at=_from_text(row["last_checked_at"]),
            last_changed_at=_from_text(row["last_changed_at"]),
        )

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def list_active(self, topic: Topic | None = None) -> list[Subscriber]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM subscribers WHERE active = 1").fetchall()
        subscribers = [self._row_to_subscriber(row) for row in rows]
        if topic is None:
            return subscribers
        return [subscriber for subscriber in subscribers if subscriber.wants(topic)]

    def get_subscriber(self, subscriber_id: int | str) -> Subscriber | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE chat_id = ?", (str(subscriber_id),)
            ).fetchone()
        return self._row_to_subscriber(row) if row else None

    def set_active(self, subscriber_id: int | str, active: bool) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE subscribers SET active = ? WHERE chat_id = ?",
                (1 if active else 0, str(subscriber_id)),
            )

    def upsert(self, subscriber: Subscriber) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO subscribers(chat_id, active, preferences, subscribed_at, username, first_name) "
                "VALUES (?, 1, ?, ?, ?, ?)",
                (
                    str(subscriber.id),
                    _dump_preferences(subscriber.preferences),
                    _to_text(subscriber.subscribed_at or utcnow()),
                    subscriber.username,
                    subscriber.first_name,
                ),
            )
            created = cur.rowcount == 1
            if not created:
                conn.execute(
                    "UPDATE subscribers SET active = 1, username = COALESCE(?, username), "
                    "first_name = COALESCE(?, first_name) WHERE chat_id = ?",
                    (subscriber.username, subscriber.first_name, str(subscriber.id)),
                )
            return created

    def set_preference(self, subscriber_id: int | str, topic: Topic, enabled: bool) -> Subscriber | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE chat_id = ?", (str(subscriber_id),)
            ).fetchone()
            if row is None:
                return None
            subscriber = self._row_to_subscriber(row)
            subscriber.preferences[Topic(topic)] = bool(enabled)
            conn.execute(
                "UPDATE subscribers SET preferences = ? WHERE chat_id = ?",
                (_dump_preferences(subscriber.preferences), str(subscriber_id)),
            )
        return subscriber

    def list_subscribers(self) -> list[Subscriber]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM subscribers ORDER BY subscribed_at").fetchall()
        return [self._row_to_subscriber(row) for row in rows]

    @staticmethod
    def _row_to_subscriber(row: sqlite3.Row) -> Subscriber:
        return Subscriber(
            id=_restore_id(row["chat_id"]),
            active=bool(row["active"]),
            preferences=coerce_preferences(json.loads(row["preferences"] or "{}")),
            subscribed_at=_from_text(row["subscribed_at"]),
            username=row["username"],
            first_name=row["first_name"],
        )

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------
    def record(self, event_type: str, data: dict[str, Any]) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO events(type, data, timestamp) VALUES (?, ?, ?)",
                (event_type, json.dumps(data, ensure_ascii=False, default=str), _to_text(utcnow())),
            )

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT type, data, timestamp FROM events ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [
            {"type": row["type"], "data": json.loads(row["data"]), "timestamp": row["timestamp"]}
            for row in rows
        ]

    def close(self) -> None:
        self.manager.close_all()


__all__ = ["SQLiteStateStore"]
