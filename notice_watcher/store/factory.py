"""Build the configured state backend."""

from __future__ import annotations

from pathlib import Path

from ..config import StorageSettings
from ..infra.storage import MongoManager, SQLiteManager
from .base import StateBackend
from .mongo_store import MongoStateStore
from .sqlite_store import SQLiteStateStore


class StoreFactory:
    """Instantiate the backend named in the storage settings."""

    @staticmethod
    def build(
        settings: StorageSettings,
        base_dir: Path,
        sqlite_manager: SQLiteManager | None = None,
        mongo_manager: MongoManager | None = None,
    ) -> StateBackend:
        if settings.backend == "mongodb":
            return MongoStateStore(mongo_manager or MongoManager(), settings.mongodb_uri, settings.database)
        return SQLiteStateStore(sqlite_manager or SQLiteManager(), settings.resolved_sqlite_path(base_dir))


__all__ = ["StoreFactory"]
