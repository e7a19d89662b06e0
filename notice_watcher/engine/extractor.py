"""Reduce a source page to its ordered list of normalized titles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Union

import structlog

from ..config import SourceProfile
from .fetcher import FetchError, FetchRequest, Fetcher
from .listing import iter_listing_rows


class Unavailable(Enum):
    """Signal that a page could not be fetched or parsed this pass."""

    UNAVAILABLE = "unavailable"


UNAVAILABLE = Unavailable.UNAVAILABLE


@dataclass(slots=True)
class ExtractionResult:
    url: str
    titles: list[str]

    @property
    def empty(self) -> bool:
        return not self.titles


class Extractor:
    """Fetch a source page and keep only its semantically meaningful titles."""

    def __init__(
        self,
        fetcher: Fetcher,
        max_titles: int = 10,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.max_titles = max_titles
        self.logger = logger or structlog.get_logger("notice_watcher.extractor")

    def extract(self, profile: SourceProfile) -> Union[ExtractionResult, Unavailable]:
        try:
            response = self.fetcher.fetch(FetchRequest(url=profile.url))
        except FetchError as exc:
            self.logger.warning("source_unavailable", source=profile.kind.value, error=str(exc))
            return UNAVAILABLE
        try:
            rows = iter_listing_rows(response.text, profile, base_url=response.url)
            titles = [row.title for row in islice(rows, self.max_titles)]
        except (ValueError, TypeError) as exc:
            self.logger.warning("source_unparsable", source=profile.kind.value, error=str(exc))
            return UNAVAILABLE
        self.logger.debug("titles_extracted", source=profile.kind.value, count=len(titles))
        return ExtractionResult(url=response.url, titles=titles)


__all__ = ["ExtractionResult", "Extractor", "UNAVAILABLE", "Unavailable"]
