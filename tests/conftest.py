"""Shared fixtures: isolated home directory, config, SQLite store, fake channel and HTML builders."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Sequence

import httpx
import pytest

from notice_watcher.channel import DeliveryStatus, MessagingChannel
from notice_watcher.config import (
    ConfigLocator,
    ConfigRepository,
    FetchSettings,
    GlobalConfig,
    SourceKind,
    SourceProfile,
    Topic,
)
from notice_watcher.engine import Fetcher
from notice_watcher.infra import SQLiteManager
from notice_watcher.store import SQLiteStateStore

ENV_NAMES = ("BOT_TOKEN", "WEBHOOK_DOMAIN", "MONGODB_URI", "STORAGE_BACKEND", "API_KEY")


@pytest.fixture(scope="session", autouse=True)
def isolated_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    home = tmp_path_factory.mktemp("notice_watcher_home")
    with pytest.MonkeyPatch.context() as patcher:
        patcher.setenv("NOTICE_WATCHER_HOME", str(home))
        for name in ENV_NAMES:
            patcher.delenv(name, raising=False)
        yield home


@pytest.fixture()
def sample_global_config() -> GlobalConfig:
    return GlobalConfig(fetch=FetchSettings(retry_delay=0))


@pytest.fixture()
def sample_profile() -> Callable[..., SourceProfile]:
    def _factory(**overrides) -> SourceProfile:
        payload = {
            "kind": SourceKind.RESULT,
            "url": "http://example.edu/results.htm",
            "topic": Topic.RESULTS,
            "label": "Exam Results Update",
            "listing_label": "Latest Exam Results",
            "icon": "🎓",
        }
        payload.update(overrides)
        return SourceProfile(**payload)

    return _factory


@pytest.fixture()
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    locator = ConfigLocator(project_root=tmp_path)
    locator.project_root = tmp_path
    locator.data_dir = tmp_path / "data"
    locator.logs_dir = tmp_path / "logs"
    locator.ensure_directories()
    return ConfigRepository(locator)


@pytest.fixture()
def sqlite_store(tmp_path: Path) -> Iterable[SQLiteStateStore]:
    store = SQLiteStateStore(SQLiteManager(), tmp_path / "state.db")
    yield store
    store.close()


class FakeChannel(MessagingChannel):
    """Record sends; per-recipient outcomes come from ``statuses`` or ``errors``."""

    def __init__(
        self,
        statuses: dict | None = None,
        errors: dict | None = None,
    ) -> None:
        self.statuses = statuses or {}
        self.errors = errors or {}
        self.sent: list[tuple[int | str, str]] = []

    def send(self, recipient_id, message: str) -> DeliveryStatus:
        self.sent.append((recipient_id, message))
        if recipient_id in self.errors:
            raise self.errors[recipient_id]
        return self.statuses.get(recipient_id, DeliveryStatus.DELIVERED)

    @property
    def recipients(self) -> list:
        return [recipient for recipient, _ in self.sent]


@pytest.fixture()
def fake_channel() -> Callable[..., FakeChannel]:
    return FakeChannel


def listing_html(titles: Sequence[str], dates: Sequence[str] | None = None, header: bool = True) -> str:
    rows = []
    if header:
        rows.append("<tr><th>S.No</th><th>Title</th><th>Date</th></tr>")
    for index, title in enumerate(titles, start=1):
        date = dates[index - 1] if dates else "01-02-2024"
        rows.append(
            f"<tr><td>{index}</td><td><a href='/files/{index}.pdf'>{title}</a></td><td>{date}</td></tr>"
        )
    return f"<html><body><table>{''.join(rows)}</table></body></html>"


@pytest.fixture()
def html_listing() -> Callable[..., str]:
    return listing_html


def make_fetcher(
    handler: Callable[[httpx.Request], httpx.Response],
    settings: FetchSettings | None = None,
) -> Fetcher:
    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
    return Fetcher(settings or FetchSettings(retry_delay=0), client=client, sleep=lambda _seconds: None)


@pytest.fixture()
def fetcher_factory() -> Callable[..., Fetcher]:
    return make_fetcher
