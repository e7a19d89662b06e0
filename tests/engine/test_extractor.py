from __future__ import annotations

import httpx

from notice_watcher.config import DATE_PATTERN, SourceKind, Topic
from notice_watcher.engine.extractor import UNAVAILABLE, Extractor
from notice_watcher.engine.fingerprint import fingerprint
from notice_watcher.engine.listing import iter_listing_rows


def _extract(fetcher_factory, html: str, profile, max_titles: int = 10):
    fetcher = fetcher_factory(lambda request: httpx.Response(200, text=html))
    return Extractor(fetcher, max_titles=max_titles).extract(profile)


def test_extracts_titles_in_page_order(fetcher_factory, html_listing, sample_profile) -> None:
    html = html_listing(["B.Tech 5th Sem Result", "MBA 3rd Sem Result", "BCA Reappear Result"])
    result = _extract(fetcher_factory, html, sample_profile())
    assert result.titles == ["B.Tech 5th Sem Result", "MBA 3rd Sem Result", "BCA Reappear Result"]


def test_short_and_excluded_rows_are_skipped(fetcher_factory, sample_profile) -> None:
    html = (
        "<table>"
        "<tr><td><a href='#'>Home</a></td></tr>"
        "<tr><td><a href='/t'>Title of documents</a></td></tr>"
        "<tr><td><a href='/s'>S.No and Date</a></td></tr>"
        "<tr><td>no link in this row at all</td></tr>"
        "<tr><td><a href='/ok'>Result of M.Tech 2nd Sem</a></td></tr>"
        "</table>"
    )
    result = _extract(fetcher_factory, html, sample_profile())
    assert result.titles == ["Result of M.Tech 2nd Sem"]


def test_whitespace_differences_do_not_change_titles(fetcher_factory, sample_profile) -> None:
    compact = "<table><tr><td><a href='/a'>Result of B.Tech 7th Sem</a></td></tr></table>"
    spaced = (
        "<html>\n  <table>\n   <tr>\n    <td>\n      <a href='/a'>  Result   of\n B.Tech\t7th Sem </a>\n"
        "    </td>\n   </tr>\n  </table>\n</html>"
    )
    first = _extract(fetcher_factory, compact, sample_profile())
    second = _extract(fetcher_factory, spaced, sample_profile())
    assert first.titles == second.titles
    assert fingerprint(first.titles) == fingerprint(second.titles)


def test_titles_are_capped(fetcher_factory, html_listing, sample_profile) -> None:
    html = html_listing([f"Notice number {index:02d}" for index in range(20)])
    result = _extract(fetcher_factory, html, sample_profile(), max_titles=10)
    assert len(result.titles) == 10
    assert result.titles[0] == "Notice number 00"


def test_circular_rows_require_a_date(fetcher_factory, sample_profile) -> None:
    profile = sample_profile(
        kind=SourceKind.CIRCULAR,
        topic=Topic.CIRCULAR,
        row_exclusions=["title", "s.no", "notices", "about university"],
        required_date_pattern=DATE_PATTERN,
    )
    html = (
        "<table>"
        "<tr><td><a href='/n1'>Fee submission notice</a></td><td>12-03-2024</td></tr>"
        "<tr><td><a href='/n2'>Admission brochure 2024</a></td><td>Download</td></tr>"
        "<tr><td><a href='/n3'>About University profile</a></td><td>01-01-2024</td></tr>"
        "</table>"
    )
    result = _extract(fetcher_factory, html, profile)
    assert result.titles == ["Fee submission notice"]


def test_empty_page_yields_empty_result(fetcher_factory, sample_profile) -> None:
    result = _extract(fetcher_factory, "<html><body><p>Maintenance</p></body></html>", sample_profile())
    assert result is not UNAVAILABLE
    assert result.empty


def test_fetch_failure_is_unavailable(fetcher_factory, sample_profile) -> None:
    fetcher = fetcher_factory(lambda request: httpx.Response(502))
    assert Extractor(fetcher).extract(sample_profile()) is UNAVAILABLE


def test_listing_rows_resolve_links(sample_profile, html_listing) -> None:
    rows = list(iter_listing_rows(html_listing(["Result of B.Tech 7th Sem"]), sample_profile()))
    assert rows[0].link == "http://example.edu/files/1.pdf"
    assert rows[0].date == "01-02-2024"
