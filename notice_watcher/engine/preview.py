"""Human-readable digests of a source page for notifications and status replies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import islice
from urllib.parse import urljoin

import structlog
from selectolax.parser import HTMLParser

from ..config import DATE_PATTERN, SourceProfile
from .fetcher import FetchError, FetchRequest, Fetcher
from .listing import is_qualifying_title, iter_listing_rows, normalize_text

BOILERPLATE_PHRASES = ("read more", "click here", "home")
_BOILERPLATE = re.compile(r"\b(?:" + "|".join(re.escape(p) for p in BOILERPLATE_PHRASES) + r")\b")


@dataclass(slots=True)
class PreviewItem:
    title: str
    link: str
    date: str = ""


class PreviewBuilder:
    """Re-fetch a page and pick its top listing items.

    Output is presentational only; it never feeds the fingerprint.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        retries: int = 0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.retries = retries
        self.logger = logger or structlog.get_logger("notice_watcher.preview")

    def build(self, profile: SourceProfile, limit: int = 5) -> list[PreviewItem]:
        try:
            response = self.fetcher.fetch(FetchRequest(url=profile.url, retries=self.retries))
        except FetchError as exc:
            self.logger.warning("preview_unavailable", source=profile.kind.value, error=str(exc))
            return []
        items = self.from_html(response.text, profile, base_url=response.url, limit=limit)
        self.logger.debug("preview_built", source=profile.kind.value, count=len(items))
        return items

    def from_html(
        self,
        html: str,
        profile: SourceProfile,
        base_url: str | None = None,
        limit: int = 5,
    ) -> list[PreviewItem]:
        rows = iter_listing_rows(html, profile, base_url=base_url)
        items = [PreviewItem(row.title, row.link, row.date) for row in islice(rows, limit)]
        if items:
            return items
        return self._scan_anchors(html, profile, base_url or profile.url, limit)

    @staticmethod
    def _scan_anchors(html: str, profile: SourceProfile, base_url: str, limit: int) -> list[PreviewItem]:
        parser = HTMLParser(html)
        seen: set[tuple[str, str]] = set()
        items: list[PreviewItem] = []
        for anchor in parser.css("a[href]"):
            href = (anchor.attributes.get("href") or "").strip()
            if not href or href.startswith(("javascript:", "#")):
                continue
            title = normalize_text(anchor.text(separator=" "))
            if _BOILERPLATE.search(title.lower()):
                continue
            if not is_qualifying_title(title, profile):
                continue
            link = urljoin(base_url, href)
            key = (title, link)
            if key in seen:
                continue
            seen.add(key)
            context = normalize_text(anchor.parent.text(separator=" ")) if anchor.parent else ""
            match = re.search(profile.required_date_pattern or DATE_PATTERN, context)
            items.append(PreviewItem(title=title, link=link, date=match.group(0) if match else ""))
            if len(items) >= limit:
                break
        return items


__all__ = ["BOILERPLATE_PHRASES", "PreviewBuilder", "PreviewItem"]
