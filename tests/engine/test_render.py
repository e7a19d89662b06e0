from __future__ import annotations

from datetime import datetime, timezone

from notice_watcher.engine.preview import PreviewItem
from notice_watcher.engine.render import SEPARATOR, clean_text, format_timestamp, render_listing, render_update

NOW = datetime(2024, 3, 1, 6, 30, tzinfo=timezone.utc)


def test_render_update_lists_top_items(sample_profile) -> None:
    items = [
        PreviewItem("Result of B.Tech 7th Sem", "http://example.edu/1", "01-03-2024"),
        PreviewItem("Result of MBA <1st> Sem", "http://example.edu/2"),
        PreviewItem("Result of BBA 2nd Sem", "http://example.edu/3"),
        PreviewItem("Result of LLB 4th Sem", "http://example.edu/4"),
    ]
    message = render_update(sample_profile(), items, NOW, max_items=3)
    assert message.startswith("<b>🎓 Exam Results Update</b>")
    assert SEPARATOR in message
    assert "Latest Updates:" in message
    assert "1. Result of B.Tech 7th Sem" in message
    assert "📅 <i>01-03-2024</i>" in message
    assert "Result of MBA &lt;1st&gt; Sem" in message
    assert "LLB" not in message
    assert '<a href="http://example.edu/results.htm">View All Updates</a>' in message
    assert "01/03/2024, 12:00:00 PM" in message


def test_render_update_without_items(sample_profile) -> None:
    message = render_update(sample_profile(), [], NOW)
    assert "New update available!" in message
    assert "Latest Updates:" not in message


def test_render_listing_uses_listing_label(sample_profile) -> None:
    message = render_listing(sample_profile(), [PreviewItem("Result of B.Tech 7th Sem", "")], NOW)
    assert message.startswith("<b>🎓 Latest Exam Results</b>")
    assert "View All" in message


def test_clean_text_truncates_and_collapses() -> None:
    assert clean_text("  a \n  b  ") == "a b"
    assert len(clean_text("x" * 500)) == 200


def test_format_timestamp_uses_timezone() -> None:
    assert format_timestamp(NOW, "UTC") == "01/03/2024, 06:30:00 AM"


def test_clean_text_never_splits_entities() -> None:
    title = "a" * 197 + " & b"
    cleaned = clean_text(title)
    assert cleaned.endswith("&amp;")
    assert cleaned == "a" * 197 + " &amp;"
