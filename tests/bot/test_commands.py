from __future__ import annotations

import pytest

from notice_watcher.bot import CommandHandler, preference_keyboard
from notice_watcher.config import SourceKind, Topic
from notice_watcher.engine.preview import PreviewItem
from notice_watcher.store import StoreError


class RecordingBot:
    def __init__(self) -> None:
        self.replies: list[dict] = []
        self.edits: list[dict] = []
        self.answers: list[tuple] = []

    def reply(self, chat_id, text, reply_markup=None, html_mode=False):
        self.replies.append({"chat_id": chat_id, "text": text, "markup": reply_markup, "html": html_mode})

    def edit_message(self, chat_id, message_id, text, reply_markup=None):
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text, "markup": reply_markup})

    def answer_callback(self, callback_query_id, text=None):
        self.answers.append((callback_query_id, text))


def _message(text: str, chat_id: int = 77) -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id},
            "from": {"id": chat_id, "username": "meera", "first_name": "Meera"},
            "text": text,
        },
    }


def _toggle(topic: str, chat_id: int = 77) -> dict:
    return {
        "update_id": 2,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": chat_id, "username": "meera"},
            "message": {"message_id": 11, "chat": {"id": chat_id}},
            "data": f"toggle_{topic}",
        },
    }


@pytest.fixture()
def bot() -> RecordingBot:
    return RecordingBot()


@pytest.fixture()
def previews() -> dict:
    return {}


@pytest.fixture()
def handler(sqlite_store, bot, previews) -> CommandHandler:
    def render(kind: SourceKind):
        items = previews.get(kind, [])
        return items, f"listing for {kind.value}"

    return CommandHandler(sqlite_store, sqlite_store, bot, render)


def test_start_subscribes_and_shows_keyboard(handler, sqlite_store, bot) -> None:
    assert handler.handle_update(_message("/start")) == "start"
    subscriber = sqlite_store.get_subscriber(77)
    assert subscriber.active
    assert subscriber.username == "meera"
    assert bot.replies[0]["markup"] == preference_keyboard(subscriber.preferences)
    assert sqlite_store.recent(1)[0]["type"] == "user_subscribed"

    handler.handle_update(_message("/start@ipu_updates_bot"))
    assert sqlite_store.recent(1)[0]["type"] == "user_resubscribed"


def test_unsubscribe_deactivates(handler, sqlite_store, bot) -> None:
    handler.handle_update(_message("/start"))
    assert handler.handle_update(_message("/unsubscribe")) == "unsubscribe"
    assert sqlite_store.get_subscriber(77).active is False
    assert "unsubscribed" in bot.replies[-1]["text"]


def test_restart_keeps_preferences(handler, sqlite_store) -> None:
    handler.handle_update(_message("/start"))
    handler.handle_update(_toggle("circular"))
    handler.handle_update(_message("/unsubscribe"))
    handler.handle_update(_message("/start"))
    subscriber = sqlite_store.get_subscriber(77)
    assert subscriber.active
    assert subscriber.preferences[Topic.CIRCULAR] is False


def test_toggle_flips_preference_and_edits_keyboard(handler, sqlite_store, bot) -> None:
    handler.handle_update(_message("/start"))
    assert handler.handle_update(_toggle("results")) == "toggle_results"

    preferences = sqlite_store.get_subscriber(77).preferences
    assert preferences[Topic.RESULTS] is False
    edit = bot.edits[-1]
    assert edit["message_id"] == 11
    assert edit["markup"]["inline_keyboard"][0][0]["text"] == "❌ Exam Results"
    assert "You'll receive: 📅 Datesheets, 📢 Circulars" in edit["text"]
    assert bot.answers[-1] == ("cb-1", None)
    event = sqlite_store.recent(1)[0]
    assert event["type"] == "preference_changed"
    assert event["data"]["changed"] == "true -> false"


def test_toggle_without_subscription(handler, bot) -> None:
    assert handler.handle_update(_toggle("results")) == "ignored"
    assert bot.answers == [("cb-1", "Use /start to subscribe first.")]


def test_status_command_replies_with_listing(handler, bot, previews, sqlite_store) -> None:
    previews[SourceKind.DATESHEET] = [PreviewItem("Datesheet for End Term Exams", "http://x/1")]
    assert handler.handle_update(_message("/datesheet")) == "datesheet"
    assert bot.replies[0]["text"].startswith("🔍 Fetching latest datesheet")
    assert bot.replies[-1] == {"chat_id": 77, "text": "listing for datesheet", "markup": None, "html": True}
    assert sqlite_store.recent(1)[0]["type"] == "manual_check"


def test_status_command_reports_empty_preview(handler, bot) -> None:
    handler.handle_update(_message("/results"))
    assert bot.replies[-1]["text"].startswith("❌ Could not fetch exam results")


def test_plain_text_is_ignored(handler, bot) -> None:
    assert handler.handle_update(_message("hello there")) == "ignored"
    assert bot.replies == []


def test_failures_are_recorded_as_bot_errors(sqlite_store, bot) -> None:
    class BrokenDirectory:
        def upsert(self, subscriber):
            raise StoreError("connection reset")

    handler = CommandHandler(BrokenDirectory(), sqlite_store, bot, lambda kind: ([], ""))
    assert handler.handle_update(_message("/start")) == "error"
    event = sqlite_store.recent(1)[0]
    assert event["type"] == "bot_error"
    assert event["data"]["userId"] == 77
