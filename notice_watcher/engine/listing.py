"""Row classification shared by the extractor and the preview builder."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from ..config import SourceProfile

ROW_SELECTOR = "table tr"
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Collapse whitespace runs to single spaces and trim."""

    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


@dataclass(slots=True)
class ListingRow:
    """One qualifying listing row of a source page."""

    title: str
    link: str
    date: str


def is_qualifying_title(title: str, profile: SourceProfile) -> bool:
    if not title or len(title) <= profile.min_title_length:
        return False
    lowered = title.lower()
    return not any(marker in lowered for marker in profile.row_exclusions)


def has_required_date(date_text: str, profile: SourceProfile) -> bool:
    if not profile.required_date_pattern:
        return True
    return re.search(profile.required_date_pattern, date_text) is not None


def _row_date(row: Node) -> str:
    cells = row.css("td")
    if not cells:
        return ""
    return normalize_text(cells[-1].text(separator=" "))


def iter_listing_rows(html: str, profile: SourceProfile, base_url: str | None = None) -> Iterator[ListingRow]:
    """Yield qualifying rows in page order.

    The row title is the text of every anchor in the row; the link is the
    first anchor's href resolved against ``base_url``; the date is the text
    of the row's last cell.
    """

    parser = HTMLParser(html)
    base = base_url or profile.url
    for row in parser.css(ROW_SELECTOR):
        anchors = row.css("a")
        if not anchors:
            continue
        title = normalize_text(" ".join(anchor.text(separator=" ") for anchor in anchors))
        if not is_qualifying_title(title, profile):
            continue
        date_text = _row_date(row)
        if not has_required_date(date_text, profile):
            continue
        href = (anchors[0].attributes.get("href") or "").strip()
        yield ListingRow(title=title, link=urljoin(base, href) if href else "", date=date_text)


__all__ = [
    "ListingRow",
    "ROW_SELECTOR",
    "has_required_date",
    "is_qualifying_title",
    "iter_listing_rows",
    "normalize_text",
]
