"""MongoDB implementation of the state backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import SourceKind, Topic
from ..infra.storage import MongoManager
from .base import (
    MonitoredSource,
    StateBackend,
    StoreError,
    Subscriber,
    coerce_preferences,
    utcnow,
)


def _prefs_document(preferences: dict[Topic, bool]) -> dict[str, bool]:
    return {Topic(key).value: bool(value) for key, value in preferences.items()}


class MongoStateStore(StateBackend):
    """Persist into the ``updates``, ``users`` and ``logs`` collections."""

    def __init__(self, manager: MongoManager, uri: str, database: str) -> None:
        self.manager = manager
        try:
            db = manager.database(uri, database)
            self.updates = db["updates"]
            self.users = db["users"]
            self.logs = db["logs"]
            self.updates.create_index("type", unique=True)
            self.users.create_index("chatId", unique=True)
        except PyMongoError as exc:
            raise StoreError(f"MongoDB initialisation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Source state
    # ------------------------------------------------------------------
    def get_source(self, kind: SourceKind) -> MonitoredSource | None:
        try:
            document = self.updates.find_one({"type": SourceKind(kind).value})
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return self._document_to_source(document) if document else None

    def insert_if_absent(self, source: MonitoredSource) -> bool:
        try:
            self.updates.insert_one(
                {
                    "type": source.kind.value,
                    "url": source.url,
                    "hash": source.last_fingerprint,
                    "lastChecked": source.last_checked_at,
                    "lastChanged": source.last_changed_at,
                }
            )
        except DuplicateKeyError:
            return False
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return True

    def compare_and_set(
        self,
        kind: SourceKind,
        expected: str | None,
        new: str,
        checked_at: datetime,
    ) -> bool:
        try:
            document = self.updates.find_one_and_update(
                {"type": SourceKind(kind).value, "hash": expected},
                {"$set": {"hash": new, "lastChecked": checked_at, "lastChanged": checked_at}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return document is not None

    def touch(self, kind: SourceKind, checked_at: datetime) -> None:
        try:
            self.updates.update_one(
                {"type": SourceKind(kind).value}, {"$set": {"lastChecked": checked_at}}
            )
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    def list_sources(self) -> list[MonitoredSource]:
        try:
            documents = list(self.updates.find({}).sort("type"))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return [self._document_to_source(document) for document in documents]

    @staticmethod
    def _document_to_source(document: dict[str, Any]) -> MonitoredSource:
        return MonitoredSource(
            kind=SourceKind(document["type"]),
            url=document.get("url", ""),
            last_fingerprint=document.get("hash"),
            last_checked_at=document.get("lastChecked"),
            last_changed_at=document.get("lastChanged"),
        )

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def list_active(self, topic: Topic | None = None) -> list[Subscriber]:
        query: dict[str, Any] = {"active": True}
        if topic is not None:
            # documents without a preference for the topic default to enabled
            query[f"preferences.{Topic(topic).value}"] = {"$ne": False}
        try:
            documents = list(self.users.find(query))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return [self._document_to_subscriber(document) for document in documents]

    def get_subscriber(self, subscriber_id: int | str) -> Subscriber | None:
        try:
            document = self.users.find_one({"chatId": subscriber_id})
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return self._document_to_subscriber(document) if document else None

    def set_active(self, subscriber_id: int | str, active: bool) -> None:
        try:
            self.users.update_one({"chatId": subscriber_id}, {"$set": {"active": bool(active)}})
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    def upsert(self, subscriber: Subscriber) -> bool:
        update: dict[str, Any] = {
            "$set": {"active": True},
            "$setOnInsert": {
                "preferences": _prefs_document(subscriber.preferences),
                "subscribedAt": subscriber.subscribed_at or utcnow(),
            },
        }
        if subscriber.username is not None:
            update["$set"]["username"] = subscriber.username
        if subscriber.first_name is not None:
            update["$set"]["firstName"] = subscriber.first_name
        try:
            result = self.users.update_one({"chatId": subscriber.id}, update, upsert=True)
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return result.upserted_id is not None

    def set_preference(self, subscriber_id: int | str, topic: Topic, enabled: bool) -> Subscriber | None:
        try:
            document = self.users.find_one_and_update(
                {"chatId": subscriber_id},
                {"$set": {f"preferences.{Topic(topic).value}": bool(enabled)}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return self._document_to_subscriber(document) if document else None

    def list_subscribers(self) -> list[Subscriber]:
        try:
            documents = list(self.users.find({}).sort("subscribedAt"))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return [self._document_to_subscriber(document) for document in documents]

    @staticmethod
    def _document_to_subscriber(document: dict[str, Any]) -> Subscriber:
        return Subscriber(
            id=document["chatId"],
            active=bool(document.get("active", False)),
            preferences=coerce_preferences(document.get("preferences")),
            subscribed_at=document.get("subscribedAt"),
            username=document.get("username"),
            first_name=document.get("firstName"),
        )

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------
    def record(self, event_type: str, data: dict[str, Any]) -> None:
        try:
            self.logs.insert_one({"type": event_type, "data": data, "timestamp": utcnow()})
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        try:
            documents = list(self.logs.find({}, {"_id": 0}).sort("timestamp", DESCENDING).limit(limit))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return documents

    def close(self) -> None:
        self.manager.close_all()


__all__ = ["MongoStateStore"]
