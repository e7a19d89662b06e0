"""Telegram Bot API client."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ..config import TelegramSettings
from .base import DeliveryStatus, MessagingChannel

# 400 descriptions that mean the chat can never be reached again
_PERMANENT_DESCRIPTIONS = (
    "chat not found",
    "user is deactivated",
    "bot was kicked",
    "bot was blocked",
    "peer_id_invalid",
)


class TelegramError(RuntimeError):
    """Raised by the non-delivery helpers when the Bot API rejects a call."""

    def __init__(self, method: str, status_code: int, description: str) -> None:
        super().__init__(f"Telegram {method} failed ({status_code}): {description}")
        self.method = method
        self.status_code = status_code
        self.description = description


class TelegramChannel(MessagingChannel):
    """Send messages and manage the webhook through the Bot API."""

    def __init__(
        self,
        settings: TelegramSettings,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not settings.bot_token:
            raise ValueError("Telegram bot token is not configured (BOT_TOKEN)")
        self.settings = settings
        self.timeout = timeout
        self._base = f"{settings.api_base.rstrip('/')}/bot{settings.bot_token}"
        self._client = client or httpx.Client(timeout=timeout)
        self.logger = logger or structlog.get_logger("notice_watcher.telegram")

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    def send(self, recipient_id: int | str, message: str) -> DeliveryStatus:
        payload = {
            "chat_id": recipient_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            response = self._client.post(f"{self._base}/sendMessage", json=payload, timeout=self.timeout)
        except httpx.HTTPError as exc:
            self.logger.warning("telegram_transport_error", chat_id=recipient_id, error=str(exc))
            return DeliveryStatus.TRANSIENT_FAILURE
        status = self.classify(response)
        if status is not DeliveryStatus.DELIVERED:
            self.logger.warning(
                "telegram_send_failed",
                chat_id=recipient_id,
                status_code=response.status_code,
                description=self._description(response),
                classification=status.value,
            )
        return status

    @classmethod
    def classify(cls, response: httpx.Response) -> DeliveryStatus:
        if response.status_code == 200:
            return DeliveryStatus.DELIVERED
        if response.status_code == 403:
            return DeliveryStatus.PERMANENT_FAILURE
        if response.status_code == 400:
            description = cls._description(response).lower()
            if any(marker in description for marker in _PERMANENT_DESCRIPTIONS):
                return DeliveryStatus.PERMANENT_FAILURE
        return DeliveryStatus.TRANSIENT_FAILURE

    @staticmethod
    def _description(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("description") or "")
        return ""

    # ------------------------------------------------------------------
    # Bot interaction helpers
    # ------------------------------------------------------------------
    def call(self, method: str, payload: dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        response = self._client.post(
            f"{self._base}/{method}", json=payload or {}, timeout=timeout or self.timeout
        )
        if response.status_code != 200:
            raise TelegramError(method, response.status_code, self._description(response))
        body = response.json()
        return body.get("result") if isinstance(body, dict) else body

    def reply(
        self,
        chat_id: int | str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        html_mode: bool = False,
    ) -> Any:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if html_mode:
            payload["parse_mode"] = "HTML"
            payload["disable_web_page_preview"] = True
        return self.call("sendMessage", payload)

    def edit_message(
        self,
        chat_id: int | str,
        message_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> Any:
        payload: dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        return self.call("editMessageText", payload)

    def answer_callback(self, callback_query_id: str, text: str | None = None) -> Any:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return self.call("answerCallbackQuery", payload)

    def set_webhook(self, url: str) -> Any:
        return self.call("setWebhook", {"url": url})

    def get_webhook_info(self) -> Any:
        return self.call("getWebhookInfo")

    def delete_webhook(self) -> Any:
        return self.call("deleteWebhook")

    def get_updates(self, offset: int | None = None, timeout: int = 25) -> list[dict[str, Any]]:
        """Long-poll for updates; the HTTP timeout outlasts the server-side wait."""

        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        return self.call("getUpdates", payload, timeout=timeout + self.timeout) or []


__all__ = ["TelegramChannel", "TelegramError"]
