"""Infra layer utilities (storage handles)."""

from .storage import MongoManager, SQLiteManager

__all__ = ["MongoManager", "SQLiteManager"]
