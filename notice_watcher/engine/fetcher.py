"""HTTP fetching with fixed-backoff retries."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

import httpx
import structlog

from ..config import FetchSettings


class FetchError(RuntimeError):
    """Raised when a page could not be retrieved after all attempts."""

    def __init__(self, url: str, attempts: int, message: str) -> None:
        super().__init__(f"Fetch failed after {attempts} attempts: {url} ({message})")
        self.url = url
        self.attempts = attempts


@dataclass(slots=True)
class FetchRequest:
    """Input for the fetcher."""

    url: str
    headers: dict[str, str] | None = None
    timeout: float | None = None
    retries: int | None = None


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    text: str
    headers: Dict[str, str]
    raw: httpx.Response | None = field(repr=False, default=None)


class Fetcher:
    """Execute GET requests with a bounded number of fixed-delay retries."""

    def __init__(
        self,
        settings: FetchSettings,
        logger: structlog.BoundLogger | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("notice_watcher.fetcher")
        headers = {"User-Agent": settings.user_agent}
        headers.update(settings.extra_headers)
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=settings.timeout,
            headers=headers,
        )
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def fetch(self, request: FetchRequest) -> FetchResponse:
        retries = self.settings.retries if request.retries is None else request.retries
        max_attempts = retries + 1
        timeout = request.timeout or self.settings.timeout
        last_error = "unknown"
        for attempt in range(1, max_attempts + 1):
            try:
                response = self._client.get(
                    request.url,
                    headers=request.headers,
                    timeout=timeout,
                )
                if self._is_failure(response):
                    last_error = f"unexpected status {response.status_code}"
                else:
                    return FetchResponse(
                        url=str(response.url),
                        status_code=response.status_code,
                        text=response.text,
                        headers=dict(response.headers),
                        raw=response,
                    )
            except httpx.HTTPError as exc:
                last_error = str(exc) or exc.__class__.__name__

            if attempt < max_attempts:
                self.logger.warning(
                    "fetch_retry",
                    url=request.url,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=last_error,
                )
                self._sleep(self.settings.retry_delay)

        self.logger.error("fetch_failed", url=request.url, attempts=max_attempts, error=last_error)
        raise FetchError(request.url, max_attempts, last_error)

    @staticmethod
    def _is_failure(response: Any) -> bool:
        status_code = getattr(response, "status_code", 0)
        if status_code >= 500:
            return True
        if status_code == 429:
            return True
        return False


__all__ = ["FetchError", "FetchRequest", "FetchResponse", "Fetcher"]
