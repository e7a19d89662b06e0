"""
FastAPI application exposing the pass trigger, the Telegram webhook and a health probe.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Security, status
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from .. import __version__
from ..bot import CommandHandler, UpdateDeduplicator
from ..config import ServerSettings
from ..orchestrator import Orchestrator

SERVICE_NAME = "IPU Updates Bot"

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def is_authorized(candidate: str | None, settings: ServerSettings) -> bool:
    """Match the caller key against the API key or the trusted caller marker."""

    if not candidate:
        return False
    accepted = [key for key in (settings.api_key, settings.trusted_caller_marker) if key]
    return any(secrets.compare_digest(candidate.encode(), key.encode()) for key in accepted)


def create_app(
    orchestrator: Orchestrator,
    settings: ServerSettings,
    handler: CommandHandler | None = None,
    deduplicator: UpdateDeduplicator | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator: runs detection passes for ``/api/check-updates``
        settings: auth and webhook dedup settings
        handler: bot command handler; webhook updates are acknowledged and dropped without one
        deduplicator: processed update memory, built from ``settings`` when omitted

    Returns:
        Configured FastAPI application
    """
    logger = structlog.get_logger("notice_watcher.api")
    dedup = deduplicator or UpdateDeduplicator(
        max_entries=settings.dedup_max_entries,
        ttl_seconds=settings.dedup_ttl_seconds,
    )

    app = FastAPI(
        title="Notice Watcher API",
        description="Trigger detection passes and receive Telegram updates.",
        version=__version__,
    )

    def verify_api_key(
        header_key: str | None = Security(api_key_header),
        key: str | None = Query(default=None),
    ) -> str:
        candidate = header_key or key
        if not is_authorized(candidate, settings):
            logger.warning("unauthorized_trigger", has_key=bool(candidate))
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        return candidate or ""

    @app.get("/api/health", tags=["health"])
    def health() -> dict[str, Any]:
        return {
            "status": "active",
            "service": SERVICE_NAME,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.api_route("/api/check-updates", methods=["GET", "POST"], tags=["pipeline"])
    def check_updates(_: str = Depends(verify_api_key)) -> JSONResponse:
        try:
            summary = orchestrator.run_pass()
        except Exception as exc:  # noqa: BLE001
            logger.error("check_updates_failed", error=str(exc))
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return JSONResponse(content=summary.to_dict())

    @app.get("/api/webhook", tags=["bot"])
    def webhook_status() -> dict[str, str]:
        return {"status": "Bot is running"}

    @app.post("/api/webhook", tags=["bot"])
    def webhook(update: dict[str, Any] = Body(...)) -> dict[str, Any]:
        update_id = update.get("update_id")
        if update_id is not None and not dedup.check_and_mark(update_id):
            logger.info("webhook_duplicate", update_id=update_id)
            return {"ok": True, "duplicate": True}
        if handler is None:
            logger.warning("webhook_unhandled", update_id=update_id, reason="bot_not_configured")
            return {"ok": True, "action": "ignored"}
        action = handler.handle_update(update)
        return {"ok": True, "action": action}

    return app


__all__ = ["SERVICE_NAME", "create_app", "is_authorized"]
