from __future__ import annotations

import httpx

from notice_watcher.engine.preview import PreviewBuilder


def test_preview_uses_listing_rows(fetcher_factory, html_listing, sample_profile) -> None:
    html = html_listing(
        ["Result of B.Tech 7th Sem", "Result of MBA 1st Sem"],
        dates=["05-01-2024", "04-01-2024"],
    )
    builder = PreviewBuilder(fetcher_factory(lambda request: httpx.Response(200, text=html)))
    items = builder.build(sample_profile())
    assert [item.title for item in items] == ["Result of B.Tech 7th Sem", "Result of MBA 1st Sem"]
    assert items[0].date == "05-01-2024"
    assert items[0].link.endswith("/files/1.pdf")


def test_preview_falls_back_to_anchor_scan(sample_profile) -> None:
    html = (
        "<div>"
        "<a href='/home'>Home</a>"
        "<a href='javascript:void(0)'>Open the menu now</a>"
        "<a href='/more'>Read more about results</a>"
        "<p><a href='/r1'>Result of BBA 2nd Sem</a> 10-02-2024</p>"
        "<p><a href='/r1'>Result of BBA 2nd Sem</a></p>"
        "<p><a href='/r2'>Result of LLB 4th Sem</a></p>"
        "</div>"
    )
    builder = PreviewBuilder(fetcher=None)
    items = builder.from_html(html, sample_profile(), base_url="http://example.edu/", limit=5)
    assert [(item.title, item.link) for item in items] == [
        ("Result of BBA 2nd Sem", "http://example.edu/r1"),
        ("Result of LLB 4th Sem", "http://example.edu/r2"),
    ]
    assert items[0].date == "10-02-2024"


def test_preview_respects_limit(html_listing, sample_profile) -> None:
    html = html_listing([f"Result bulletin {index}" for index in range(8)])
    items = PreviewBuilder(fetcher=None).from_html(html, sample_profile(), limit=5)
    assert len(items) == 5


def test_preview_failure_returns_empty(fetcher_factory, sample_profile) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    builder = PreviewBuilder(fetcher_factory(handler), retries=0)
    assert builder.build(sample_profile()) == []
    assert len(calls) == 1
