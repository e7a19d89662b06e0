"""Per-source change detection backed by compare-and-set persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Sequence

import structlog

from ..config import SourceKind
from ..store.base import MonitoredSource, SourceStateStore, utcnow
from .fingerprint import fingerprint, has_changed


class DetectionState(str, Enum):
    UNSEEN = "unseen"
    INITIALIZED = "initialized"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    """A detected change, consumed by the dispatcher and then discarded."""

    source: SourceKind
    previous_fingerprint: str
    new_fingerprint: str
    detected_at: datetime


@dataclass(slots=True)
class Detection:
    source: SourceKind
    state: DetectionState
    fingerprint: str
    event: ChangeEvent | None = None

    @property
    def should_notify(self) -> bool:
        return self.event is not None


class ChangeDetector:
    """Classify each check as first-seen, changed or unchanged.

    The new fingerprint is always persisted before a ``ChangeEvent`` is
    returned, and only the caller whose compare-and-set succeeds receives the
    event, so overlapping passes notify at most once per change. Store errors
    propagate to the caller.
    """

    def __init__(
        self,
        store: SourceStateStore,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.logger = logger or structlog.get_logger("notice_watcher.detector")

    def check(self, kind: SourceKind, url: str, titles: Sequence[str]) -> Detection:
        new_fp = fingerprint(titles)
        return self.check_fingerprint(kind, url, new_fp)

    def check_fingerprint(self, kind: SourceKind, url: str, new_fp: str) -> Detection:
        kind = SourceKind(kind)
        now = self.clock()
        record = self.store.get_source(kind)
        if record is None:
            created = self.store.insert_if_absent(
                MonitoredSource(
                    kind=kind,
                    url=url,
                    last_fingerprint=new_fp,
                    last_checked_at=now,
                    last_changed_at=now,
                )
            )
            if created:
                self.logger.info("source_initialized", source=kind.value, fingerprint=new_fp[:12])
                return Detection(kind, DetectionState.INITIALIZED, new_fp)
            # another pass seeded the record first
            record = self.store.get_source(kind)
            if record is None:
                return Detection(kind, DetectionState.UNSEEN, new_fp)

        if not has_changed(record.last_fingerprint, new_fp):
            self.store.touch(kind, now)
            return Detection(kind, DetectionState.UNCHANGED, new_fp)

        won = self.store.compare_and_set(kind, record.last_fingerprint, new_fp, now)
        if not won:
            self.logger.info(
                "cas_conflict",
                source=kind.value,
                expected=(record.last_fingerprint or "")[:12],
                fingerprint=new_fp[:12],
            )
            return Detection(kind, DetectionState.UNCHANGED, new_fp)

        previous = record.last_fingerprint or ""
        self.logger.info(
            "change_detected",
            source=kind.value,
            previous=previous[:12],
            fingerprint=new_fp[:12],
        )
        event = ChangeEvent(
            source=kind,
            previous_fingerprint=previous,
            new_fingerprint=new_fp,
            detected_at=now,
        )
        return Detection(kind, DetectionState.CHANGED, new_fp, event)


__all__ = ["ChangeDetector", "ChangeEvent", "Detection", "DetectionState"]
