"""APScheduler wrapper driving the periodic detection pass."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleSettings
from ..logging_conf import configure_logging

PASS_JOB_ID = "detection::pass"


class APSchedulerAdapter:
    """Run one detection pass per tick; overlapping ticks are coalesced."""

    def __init__(self, blocking: bool = False, scheduler: BaseScheduler | None = None) -> None:
        self.scheduler = scheduler or (BlockingScheduler() if blocking else BackgroundScheduler())
        self.blocking = blocking
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.started = True
            self.logger.info("apscheduler_started", blocking=self.blocking)
            # BlockingScheduler.start() returns only on shutdown
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_pass(self, settings: ScheduleSettings, callback: Callable[[], object]) -> None:
        trigger = self.build_trigger(settings)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=PASS_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", schedule=settings.model_dump())

    def remove_pass(self) -> None:
        try:
            self.scheduler.remove_job(PASS_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job_id=PASS_JOB_ID)

    @staticmethod
    def build_trigger(settings: ScheduleSettings):
        if settings.cron:
            return CronTrigger.from_crontab(settings.cron)
        if settings.interval_seconds is not None:
            return IntervalTrigger(seconds=float(settings.interval_seconds))
        raise ValueError("Schedule requires interval_seconds or cron")


__all__ = ["APSchedulerAdapter", "PASS_JOB_ID"]
