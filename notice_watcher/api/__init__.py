"""HTTP surface: pass trigger, webhook receiver and health probe."""

from .app import create_app, is_authorized

__all__ = ["create_app", "is_authorized"]
