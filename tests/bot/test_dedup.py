from __future__ import annotations

from notice_watcher.bot import UpdateDeduplicator


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_repeated_update_is_rejected() -> None:
    dedup = UpdateDeduplicator(max_entries=10, ttl_seconds=60)
    assert dedup.check_and_mark(1) is True
    assert dedup.check_and_mark(1) is False
    assert dedup.check_and_mark(2) is True


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    dedup = UpdateDeduplicator(max_entries=10, ttl_seconds=60, clock=clock)
    dedup.check_and_mark(1)
    clock.now = 61
    assert dedup.check_and_mark(1) is True


def test_memory_is_bounded() -> None:
    dedup = UpdateDeduplicator(max_entries=3, ttl_seconds=3600)
    for update_id in range(5):
        dedup.check_and_mark(update_id)
    assert len(dedup) == 3
    assert dedup.check_and_mark(0) is True
    assert dedup.check_and_mark(4) is False
