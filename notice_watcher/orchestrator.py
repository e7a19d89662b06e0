"""Pass orchestrator wiring together extraction, detection, preview, rendering and dispatch."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import structlog

from .channel import MessagingChannel
from .config import GlobalConfig, SourceKind, SourceProfile
from .engine import (
    ChangeDetector,
    DetectionState,
    Dispatcher,
    Extractor,
    Fetcher,
    PreviewBuilder,
    PreviewItem,
    ThreadPoolManager,
    UNAVAILABLE,
    render_listing,
    render_update,
)
from .logging_conf import configure_logging, source_logger
from .store import StateBackend, StoreError
from .store.base import utcnow


class CheckStatus:
    INITIALIZED = "initialized"
    NO_CHANGE = "no_change"
    UNAVAILABLE = "unavailable"
    DEGRADED = "degraded"
    ERROR = "error"


@dataclass(slots=True)
class PassSummary:
    """Structured result of one detection pass."""

    changes: list[dict[str, Any]] = field(default_factory=list)
    checks: list[dict[str, Any]] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "timestamp": self.started_at.isoformat() if self.started_at else None,
            "duration_ms": self.duration_ms,
            "changes": list(self.changes),
            "checks": list(self.checks),
            "abandoned": list(self.abandoned),
        }


class Orchestrator:
    """Central coordinator running one pass over every configured source.

    Sources are processed sequentially. Each source's detect-and-persist step
    is independent, so a pass interrupted by its deadline leaves every
    processed source consistent and the rest untouched.
    """

    def __init__(
        self,
        config: GlobalConfig,
        backend: StateBackend,
        channel: MessagingChannel | None = None,
        fetcher: Fetcher | None = None,
        thread_pool: ThreadPoolManager | None = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.backend = backend
        self.channel = channel
        self.fetcher = fetcher or Fetcher(config.fetch)
        self.thread_pool = thread_pool or ThreadPoolManager(default_workers=config.dispatch.workers)
        self.clock = clock
        self.monotonic = monotonic
        self.logger = configure_logging().bind(component="orchestrator")
        self.extractor = Extractor(self.fetcher, max_titles=config.fetch.max_titles)
        self.detector = ChangeDetector(backend, clock=clock)
        self.preview_builder = PreviewBuilder(self.fetcher, retries=config.fetch.preview_retries)
        self.dispatcher: Dispatcher | None = None
        if channel is not None:
            self.dispatcher = Dispatcher(
                backend,
                channel,
                self.thread_pool,
                workers=config.dispatch.workers,
            )

    # ------------------------------------------------------------------
    def run_pass(self, deadline: float | None = None) -> PassSummary:
        """Check every source once; stop starting new sources after ``deadline`` seconds."""

        budget = self.config.schedule.pass_deadline if deadline is None else deadline
        started = self.monotonic()
        summary = PassSummary(started_at=self.clock())
        self.logger.info("pass_started", sources=[kind.value for kind in self.config.sources])

        for kind, profile in self.config.sources.items():
            if self.monotonic() - started >= budget:
                summary.abandoned.append(kind.value)
                continue
            self._check_source(profile, summary)

        summary.duration_ms = int((self.monotonic() - started) * 1000)
        if summary.abandoned:
            self.logger.warning("pass_deadline_exceeded", abandoned=summary.abandoned, deadline=budget)
        changed = [change["source"] for change in summary.changes]
        self._record_event(
            "check_completed",
            {
                "duration": f"{summary.duration_ms}ms",
                "changesDetected": changed or "none",
                "abandoned": summary.abandoned,
            },
        )
        self.logger.info(
            "pass_completed",
            changes=len(summary.changes),
            checks=len(summary.checks),
            abandoned=len(summary.abandoned),
            duration_ms=summary.duration_ms,
        )
        return summary

    def _check_source(self, profile: SourceProfile, summary: PassSummary) -> None:
        log = source_logger(profile.kind.value)
        extraction = self.extractor.extract(profile)
        if extraction is UNAVAILABLE:
            summary.checks.append({"source": profile.kind.value, "status": CheckStatus.UNAVAILABLE})
            return
        if extraction.empty:
            # nothing qualifying on the page; keep the last good fingerprint
            log.warning("extraction_empty", url=profile.url)
            summary.checks.append({"source": profile.kind.value, "status": CheckStatus.DEGRADED})
            return

        try:
            detection = self.detector.check(profile.kind, profile.url, extraction.titles)
        except StoreError as exc:
            log.error("state_persist_failed", error=str(exc))
            summary.checks.append({"source": profile.kind.value, "status": CheckStatus.ERROR})
            return

        if detection.state is DetectionState.INITIALIZED:
            self._record_event(
                "system_init",
                {"type": profile.kind.value, "message": f"Initialized monitoring for {profile.kind.value}"},
            )
            summary.checks.append(
                {
                    "source": profile.kind.value,
                    "status": CheckStatus.INITIALIZED,
                    "fingerprint": detection.fingerprint,
                }
            )
            return
        if not detection.should_notify:
            summary.checks.append(
                {
                    "source": profile.kind.value,
                    "status": CheckStatus.NO_CHANGE,
                    "fingerprint": detection.fingerprint,
                }
            )
            return

        event = detection.event
        self._record_event(
            "update_detected",
            {
                "type": profile.kind.value,
                "url": profile.url,
                "previousHash": event.previous_fingerprint[:20],
                "newHash": event.new_fingerprint[:20],
            },
        )
        try:
            notified = self._notify(profile, log)
        except StoreError as exc:
            # the new fingerprint is already persisted; this change goes unannounced
            log.error("dispatch_failed", error=str(exc))
            notified = 0
        summary.changes.append(
            {
                "source": profile.kind.value,
                "notified_count": notified,
                "fingerprint": event.new_fingerprint,
            }
        )

    def _notify(self, profile: SourceProfile, log: structlog.BoundLogger) -> int:
        if self.dispatcher is None:
            log.warning("dispatch_skipped", reason="channel_not_configured")
            return 0
        items = self.preview_builder.build(profile)
        message = render_update(
            profile,
            items,
            self.clock(),
            max_items=self.config.dispatch.preview_items,
            timezone=self.config.dispatch.timezone,
        )
        report = self.dispatcher.dispatch(profile.topic, message)
        self._record_event(
            "notification_sent",
            {
                "type": profile.kind.value,
                "totalUsers": report.total_active,
                "notified": report.delivered,
                "skipped": report.skipped,
                "failed": report.transient_failures + report.permanent_failures,
                "deactivated": report.deactivated,
                "updateCount": len(items),
            },
        )
        return report.delivered

    def _record_event(self, event_type: str, data: dict[str, Any]) -> None:
        try:
            self.backend.record(event_type, data)
        except StoreError as exc:
            self.logger.warning("event_record_failed", event_type=event_type, error=str(exc))

    # ------------------------------------------------------------------
    def preview(self, kind: SourceKind | str) -> list[PreviewItem]:
        profile = self.config.profile(kind)
        return self.preview_builder.build(profile)

    def render_preview(self, kind: SourceKind | str) -> tuple[list[PreviewItem], str]:
        """Return preview items and the status reply rendered from them."""

        profile = self.config.profile(kind)
        items = self.preview_builder.build(profile)
        return items, render_listing(profile, items, self.clock(), timezone=self.config.dispatch.timezone)

    def close(self) -> None:
        self.fetcher.close()
        self.thread_pool.shutdown(wait=False)


__all__ = ["CheckStatus", "Orchestrator", "PassSummary"]
