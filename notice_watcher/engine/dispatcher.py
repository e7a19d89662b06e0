"""Fan a rendered message out to every opted-in subscriber."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field

import structlog

from ..channel.base import DeliveryStatus, MessagingChannel
from ..config import Topic
from ..store.base import StoreError, Subscriber, SubscriberDirectory
from .thread_pool import ThreadPoolManager


@dataclass(slots=True, frozen=True)
class NotificationOutcome:
    subscriber_id: int | str
    delivered: bool
    permanent_failure: bool


@dataclass(slots=True)
class DispatchReport:
    """Aggregated outcome of one fan-out."""

    topic: Topic
    total_active: int = 0
    skipped: int = 0
    delivered: int = 0
    transient_failures: int = 0
    permanent_failures: int = 0
    deactivated: int = 0
    outcomes: list[NotificationOutcome] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    def as_dict(self) -> dict[str, int | str]:
        return {
            "topic": self.topic.value,
            "total_active": self.total_active,
            "skipped": self.skipped,
            "delivered": self.delivered,
            "transient_failures": self.transient_failures,
            "permanent_failures": self.permanent_failures,
            "deactivated": self.deactivated,
        }


class Dispatcher:
    """Deliver to each recipient independently on a bounded worker pool.

    A failing recipient never affects the others. Recipients the channel
    reports as permanently unreachable are deactivated; no other subscriber
    field is ever written here.
    """

    POOL_NAME = "dispatch"

    def __init__(
        self,
        directory: SubscriberDirectory,
        channel: MessagingChannel,
        thread_pool: ThreadPoolManager,
        workers: int = 8,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.channel = channel
        self.thread_pool = thread_pool
        self.workers = workers
        self.logger = logger or structlog.get_logger("notice_watcher.dispatcher")

    def dispatch(self, topic: Topic, message: str) -> DispatchReport:
        topic = Topic(topic)
        report = DispatchReport(topic=topic)
        active = self.directory.list_active()
        report.total_active = len(active)
        recipients = [subscriber for subscriber in active if subscriber.wants(topic)]
        report.skipped = len(active) - len(recipients)
        if not recipients:
            self.logger.info("dispatch_no_recipients", topic=topic.value, active=len(active))
            return report

        executor = self.thread_pool.get(self.POOL_NAME, max_workers=self.workers)
        futures: list[tuple[Subscriber, Future[DeliveryStatus]]] = [
            (subscriber, executor.submit(self.channel.send, subscriber.id, message))
            for subscriber in recipients
        ]
        for subscriber, future in futures:
            outcome = self._settle(subscriber, future)
            report.outcomes.append(outcome)
            if outcome.delivered:
                report.delivered += 1
            elif outcome.permanent_failure:
                report.permanent_failures += 1
                if self._deactivate(subscriber):
                    report.deactivated += 1
            else:
                report.transient_failures += 1

        self.logger.info("dispatch_completed", **report.as_dict())
        return report

    def _settle(self, subscriber: Subscriber, future: Future[DeliveryStatus]) -> NotificationOutcome:
        try:
            status = future.result()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("delivery_failed", chat_id=subscriber.id, error=str(exc))
            status = DeliveryStatus.TRANSIENT_FAILURE
        return NotificationOutcome(
            subscriber_id=subscriber.id,
            delivered=status is DeliveryStatus.DELIVERED,
            permanent_failure=status is DeliveryStatus.PERMANENT_FAILURE,
        )

    def _deactivate(self, subscriber: Subscriber) -> bool:
        try:
            self.directory.set_active(subscriber.id, False)
        except StoreError as exc:
            self.logger.error("deactivate_failed", chat_id=subscriber.id, error=str(exc))
            return False
        self.logger.info("subscriber_deactivated", chat_id=subscriber.id)
        return True


__all__ = ["DispatchReport", "Dispatcher", "NotificationOutcome"]
