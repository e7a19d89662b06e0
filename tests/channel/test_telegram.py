from __future__ import annotations

import json

import httpx
import pytest

from notice_watcher.channel import DeliveryStatus, TelegramChannel, TelegramError
from notice_watcher.config import TelegramSettings

SETTINGS = TelegramSettings(bot_token="123:abc")


def _channel(handler) -> TelegramChannel:
    return TelegramChannel(SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_send_posts_html_message() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    status = _channel(handler).send(555, "<b>hi</b>")
    assert status is DeliveryStatus.DELIVERED
    assert captured["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert captured["body"]["chat_id"] == 555
    assert captured["body"]["parse_mode"] == "HTML"


@pytest.mark.parametrize(
    ("status_code", "description", "expected"),
    [
        (403, "Forbidden: bot was blocked by the user", DeliveryStatus.PERMANENT_FAILURE),
        (400, "Bad Request: chat not found", DeliveryStatus.PERMANENT_FAILURE),
        (400, "Bad Request: message is too long", DeliveryStatus.TRANSIENT_FAILURE),
        (429, "Too Many Requests: retry after 5", DeliveryStatus.TRANSIENT_FAILURE),
        (502, "Bad Gateway", DeliveryStatus.TRANSIENT_FAILURE),
    ],
)
def test_classify(status_code: int, description: str, expected: DeliveryStatus) -> None:
    response = httpx.Response(status_code, json={"ok": False, "description": description})
    assert TelegramChannel.classify(response) is expected


def test_transport_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert _channel(handler).send(1, "x") is DeliveryStatus.TRANSIENT_FAILURE


def test_call_raises_on_api_error() -> None:
    channel = _channel(lambda request: httpx.Response(401, json={"ok": False, "description": "Unauthorized"}))
    with pytest.raises(TelegramError) as excinfo:
        channel.set_webhook("https://bot.example.org/api/webhook")
    assert excinfo.value.status_code == 401


def test_reply_markup_is_forwarded() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": True})

    channel = _channel(handler)
    channel.reply(9, "Welcome", reply_markup={"inline_keyboard": []})
    channel.answer_callback("cb-1")
    assert bodies[0]["reply_markup"] == {"inline_keyboard": []}
    assert "parse_mode" not in bodies[0]
    assert bodies[1] == {"callback_query_id": "cb-1"}


def test_missing_token_is_rejected() -> None:
    with pytest.raises(ValueError):
        TelegramChannel(TelegramSettings())
