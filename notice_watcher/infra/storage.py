"""Process-wide storage handles with explicit lifecycle."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict

from pymongo import MongoClient


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS sources (
                kind TEXT PRIMARY KEY,
                url TEXT NOT NULL,
                fingerprint TEXT,
                last_checked_at TEXT,
                last_changed_at TEXT
            );
            CREATE TABLE IF NOT EXISTS subscribers (
                chat_id TEXT PRIMARY KEY,
                active INTEGER NOT NULL DEFAULT 1,
                preferences TEXT NOT NULL,
                subscribed_at TEXT,
                username TEXT,
                first_name TEXT
            );
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                data TEXT NOT NULL,
                timestamp TEXT NOT NULL
            );
            """
        )
        conn.commit()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class MongoManager:
    """Lazily create one MongoClient per URI and reuse it until teardown."""

    def __init__(self, **client_options: Any) -> None:
        self._clients: Dict[str, MongoClient] = {}
        self._lock = Lock()
        self._options = {
            "serverSelectionTimeoutMS": 10000,
            "socketTimeoutMS": 45000,
            "retryWrites": True,
            "retryReads": True,
            "maxPoolSize": 4,
        }
        self._options.update(client_options)

    def client(self, uri: str) -> MongoClient:
        with self._lock:
            if uri not in self._clients:
                self._clients[uri] = MongoClient(uri, **self._options)
            return self._clients[uri]

    def database(self, uri: str, name: str):
        return self.client(uri)[name]

    def close_all(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()


__all__ = ["MongoManager", "SQLiteManager"]
