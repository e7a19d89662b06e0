from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from notice_watcher import app as cli_app
from notice_watcher.config import GlobalConfig, SourceKind, Topic
from notice_watcher.engine import PreviewItem
from notice_watcher.orchestrator import PassSummary
from notice_watcher.store import MonitoredSource, Subscriber

runner = CliRunner()


class StubOrchestrator:
    def __init__(self) -> None:
        self.deadlines: list = []

    def run_pass(self, deadline=None) -> PassSummary:
        self.deadlines.append(deadline)
        return PassSummary(
            changes=[{"source": "result", "notified_count": 4, "fingerprint": "ff"}],
            checks=[{"source": "datesheet", "status": "no_change"}],
            abandoned=["circular"],
            started_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
            duration_ms=42,
        )

    def preview(self, kind: SourceKind) -> list[PreviewItem]:
        if kind is SourceKind.CIRCULAR:
            return []
        return [PreviewItem("Result of B.Tech 7th Sem", "http://x/1.pdf", "01-02-2024")]


class StubBackend:
    def list_sources(self) -> list[MonitoredSource]:
        return [MonitoredSource(kind=SourceKind.RESULT, url="http://x", last_fingerprint="abcdef0123456789")]

    def list_subscribers(self) -> list[Subscriber]:
        return [
            Subscriber(id=11, username="asha"),
            Subscriber(id=12, active=False, preferences={Topic.RESULTS: False}),
        ]

    def list_active(self) -> list[Subscriber]:
        return [Subscriber(id=11, username="asha")]

    def recent(self, limit: int) -> list[dict]:
        return [{"type": "system_init", "data": {"type": "result"}, "timestamp": "2024-03-01T00:00:00"}][:limit]


@pytest.fixture()
def stub_state(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    state = SimpleNamespace(
        config=GlobalConfig(),
        backend=StubBackend(),
        orchestrator=StubOrchestrator(),
        scheduler=None,
        channel=None,
        handler=None,
    )
    monkeypatch.setattr(cli_app, "build_state", lambda verbose: state)
    return state


def test_run_prints_pass_table(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["run", "--deadline", "30"])
    assert result.exit_code == 0, result.output
    assert "Pass result" in result.output
    assert "abandoned" in result.output
    assert "42 ms" in result.output
    assert stub_state.orchestrator.deadlines == [30.0]


def test_sources_lists_every_configured_kind(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["sources"])
    assert result.exit_code == 0, result.output
    assert "abcdef012345" in result.output
    assert "not seen" in result.output


def test_preview_table_and_failures(stub_state) -> None:
    ok = runner.invoke(cli_app.app, ["preview", "result"])
    assert ok.exit_code == 0, ok.output
    assert "Result of B.Tech 7th Sem" in ok.output

    unknown = runner.invoke(cli_app.app, ["preview", "hostel"])
    assert unknown.exit_code == 1
    assert "Unknown source kind" in unknown.output

    empty = runner.invoke(cli_app.app, ["preview", "circular"])
    assert empty.exit_code == 1


def test_subscribers_table(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["subscribers"])
    assert result.exit_code == 0, result.output
    assert "Subscribers · 2" in result.output
    assert "results=off" in result.output

    active = runner.invoke(cli_app.app, ["subscribers", "--active-only"])
    assert "Subscribers · 1" in active.output


def test_events_table(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["events", "--limit", "5"])
    assert result.exit_code == 0, result.output
    assert "system_init" in result.output


def test_webhook_requires_bot_token(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["webhook", "set", "https://bot.example.org/api/webhook"])
    assert result.exit_code == 1
    assert "BOT_TOKEN" in result.output


def test_webhook_set_uses_domain(stub_state) -> None:
    targets: list[str] = []
    stub_state.channel = SimpleNamespace(set_webhook=targets.append)
    stub_state.config.telegram.webhook_domain = "https://bot.example.org/"

    result = runner.invoke(cli_app.app, ["webhook", "set"])
    assert result.exit_code == 0, result.output
    assert targets == ["https://bot.example.org/api/webhook"]


def test_log_list(stub_state, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_app, "available_source_logs", lambda: [Path("result.log")])
    result = runner.invoke(cli_app.app, ["log", "list"])
    assert result.exit_code == 0, result.output
    assert "result.log" in result.output


def test_poll_requires_bot_token(stub_state) -> None:
    result = runner.invoke(cli_app.app, ["poll"])
    assert result.exit_code == 1
    assert "BOT_TOKEN" in result.output


def test_poll_removes_webhook_and_runs_poller(stub_state, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list = []
    stub_state.channel = SimpleNamespace(delete_webhook=lambda: calls.append("delete_webhook"))
    stub_state.handler = object()

    class StubPoller:
        def __init__(self, channel, handler, deduplicator, poll_timeout):
            calls.append(("poller", channel is stub_state.channel, handler is stub_state.handler, poll_timeout))

        def run(self):
            calls.append("run")

    monkeypatch.setattr(cli_app, "UpdatePoller", StubPoller)
    result = runner.invoke(cli_app.app, ["poll", "--timeout", "10"])
    assert result.exit_code == 0, result.output
    assert calls == ["delete_webhook", ("poller", True, True, 10), "run"]
