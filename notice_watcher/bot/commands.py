"""Telegram update handling: subscription commands, status commands and preference toggles."""

from __future__ import annotations

from typing import Any, Callable

import structlog

from ..config import SourceKind, Topic
from ..engine.preview import PreviewItem
from ..store.base import EventLog, StoreError, Subscriber, SubscriberDirectory, default_preferences

WELCOME_TEXT = (
    "✨ Welcome to IPU Updates Bot!\n\n"
    "Choose which notifications you want to receive:\n\n"
    "Tap on any option below to enable/disable:"
)
UNSUBSCRIBED_TEXT = "❌ You have been unsubscribed. Use /start to subscribe again."
NOT_SUBSCRIBED_TEXT = "Use /start to subscribe first."

TOGGLE_PREFIX = "toggle_"

# (button label, short label used in the status line)
TOPIC_LABELS: dict[Topic, tuple[str, str]] = {
    Topic.RESULTS: ("Exam Results", "🎓 Results"),
    Topic.DATESHEET: ("Datesheets", "📅 Datesheets"),
    Topic.CIRCULAR: ("Circulars/Notices", "📢 Circulars"),
}

# command -> (source, noun used in progress and error replies)
STATUS_COMMANDS: dict[str, tuple[SourceKind, str]] = {
    "results": (SourceKind.RESULT, "exam results"),
    "datesheet": (SourceKind.DATESHEET, "datesheet"),
    "circular": (SourceKind.CIRCULAR, "circulars"),
}

PreviewRenderer = Callable[[SourceKind], tuple[list[PreviewItem], str]]


def preference_keyboard(preferences: dict[Topic, bool]) -> dict[str, Any]:
    rows = []
    for topic, (label, _) in TOPIC_LABELS.items():
        mark = "✅" if preferences.get(topic, True) else "❌"
        rows.append([{"text": f"{mark} {label}", "callback_data": f"{TOGGLE_PREFIX}{topic.value}"}])
    return {"inline_keyboard": rows}


def preference_status(preferences: dict[Topic, bool]) -> str:
    enabled = [short for topic, (_, short) in TOPIC_LABELS.items() if preferences.get(topic, True)]
    if enabled:
        return f"✅ You'll receive: {', '.join(enabled)}"
    return "⚠️ No notifications enabled. Enable at least one!"


class CommandHandler:
    """Route one Telegram update to the matching command or callback.

    ``channel`` must offer ``reply``, ``edit_message`` and ``answer_callback``
    (see ``TelegramChannel``).
    """

    def __init__(
        self,
        directory: SubscriberDirectory,
        events: EventLog,
        channel: Any,
        render_preview: PreviewRenderer,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.events = events
        self.channel = channel
        self.render_preview = render_preview
        self.logger = logger or structlog.get_logger("notice_watcher.bot")

    def handle_update(self, update: dict[str, Any]) -> str:
        """Process an update and return the name of the action taken."""

        try:
            if "callback_query" in update:
                return self._handle_callback(update["callback_query"])
            message = update.get("message") or {}
            text = (message.get("text") or "").strip()
            if not text.startswith("/"):
                return "ignored"
            command = text.split()[0][1:].split("@", 1)[0].lower()
            return self.handle_command(command, message)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("bot_error", error=str(exc), update_id=update.get("update_id"))
            sender = self._sender(update)
            try:
                self.events.record(
                    "bot_error",
                    {
                        "error": str(exc),
                        "userId": sender.get("id"),
                        "username": sender.get("username"),
                        "updateId": update.get("update_id"),
                    },
                )
            except StoreError:
                self.logger.warning("event_record_failed", event_type="bot_error")
            return "error"

    def handle_command(self, command: str, message: dict[str, Any]) -> str:
        chat_id = message["chat"]["id"]
        sender = message.get("from") or {}
        if command == "start":
            self._start(chat_id, sender)
            return "start"
        if command == "unsubscribe":
            self.directory.set_active(chat_id, False)
            self.events.record("user_unsubscribed", {"chatId": chat_id, "username": sender.get("username")})
            self.channel.reply(chat_id, UNSUBSCRIBED_TEXT)
            return "unsubscribe"
        if command in STATUS_COMMANDS:
            self._status(command, chat_id, sender)
            return command
        return "ignored"

    # ------------------------------------------------------------------
    def _start(self, chat_id: int | str, sender: dict[str, Any]) -> None:
        created = self.directory.upsert(
            Subscriber(
                id=chat_id,
                active=True,
                preferences=default_preferences(),
                username=sender.get("username"),
                first_name=sender.get("first_name"),
            )
        )
        if created:
            self.events.record(
                "user_subscribed",
                {
                    "chatId": chat_id,
                    "username": sender.get("username"),
                    "firstName": sender.get("first_name"),
                    "status": "new_user",
                },
            )
        else:
            self.events.record(
                "user_resubscribed",
                {"chatId": chat_id, "username": sender.get("username"), "status": "returning_user"},
            )
        subscriber = self.directory.get_subscriber(chat_id)
        preferences = subscriber.preferences if subscriber else default_preferences()
        self.channel.reply(chat_id, WELCOME_TEXT, reply_markup=preference_keyboard(preferences))
        self.logger.info("subscriber_started", chat_id=chat_id, created=created)

    def _status(self, command: str, chat_id: int | str, sender: dict[str, Any]) -> None:
        kind, noun = STATUS_COMMANDS[command]
        self.channel.reply(chat_id, f"🔍 Fetching latest {noun}...")
        items, message = self.render_preview(kind)
        if not items:
            self.channel.reply(chat_id, f"❌ Could not fetch {noun} at the moment. Please try again later.")
            return
        self.events.record(
            "manual_check",
            {"chatId": chat_id, "username": sender.get("username"), "type": command},
        )
        self.channel.reply(chat_id, message, html_mode=True)

    def _handle_callback(self, query: dict[str, Any]) -> str:
        data = query.get("data") or ""
        if not data.startswith(TOGGLE_PREFIX):
            self.channel.answer_callback(query["id"])
            return "ignored"
        try:
            topic = Topic(data[len(TOGGLE_PREFIX):])
        except ValueError:
            self.channel.answer_callback(query["id"])
            return "ignored"

        message = query.get("message") or {}
        chat_id = message.get("chat", {}).get("id", query.get("from", {}).get("id"))
        subscriber = self.directory.get_subscriber(chat_id)
        if subscriber is None:
            self.channel.answer_callback(query["id"], NOT_SUBSCRIBED_TEXT)
            return "ignored"

        old_value = subscriber.wants(topic)
        updated = self.directory.set_preference(chat_id, topic, not old_value)
        preferences = updated.preferences if updated else subscriber.preferences
        self.events.record(
            "preference_changed",
            {
                "chatId": chat_id,
                "username": query.get("from", {}).get("username"),
                "type": topic.value,
                "changed": f"{str(old_value).lower()} -> {str(not old_value).lower()}",
                "preferences": {key.value: value for key, value in preferences.items()},
            },
        )
        if "message_id" in message:
            self.channel.edit_message(
                chat_id,
                message["message_id"],
                f"{WELCOME_TEXT}\n\n{preference_status(preferences)}",
                reply_markup=preference_keyboard(preferences),
            )
        self.channel.answer_callback(query["id"])
        return f"toggle_{topic.value}"

    @staticmethod
    def _sender(update: dict[str, Any]) -> dict[str, Any]:
        for key in ("message", "callback_query"):
            if key in update:
                return update[key].get("from") or {}
        return {}


__all__ = [
    "CommandHandler",
    "STATUS_COMMANDS",
    "TOPIC_LABELS",
    "UNSUBSCRIBED_TEXT",
    "WELCOME_TEXT",
    "preference_keyboard",
    "preference_status",
]
