"""Outbox dispatcher: drains staged order events into the event channel.

Publication happens outside the command's unit of work. A pass publishes
each order's pending records in sequence order; when one of them cannot be
published the rest of that order waits for the next pass, so consumers never
see a later event of an order before an earlier one. Other orders are not
held back.

The read side asks for a replay when it detects a sequence gap, and every
delivery a consumer failed on (a channel dead letter) is turned into a replay
from that event. Replays re-send already published records; consumers drop
what they have already applied.
"""

import asyncio
import threading
from collections import deque
from dataclasses import dataclass, field

import structlog
from protean.domain import Domain
from shared.errors import PublishError
from shared.querying import count, scan

from ordering.outbox.publisher import EventPublisher
from ordering.outbox.record import OutboxRecord, OutboxStatus

logger = structlog.get_logger(__name__)


@dataclass
class DispatchReport:
    published: int = 0
    replayed: int = 0
    failed_orders: list[str] = field(default_factory=list)


class OutboxDispatcher:
    def __init__(self, domain: Domain, publisher: EventPublisher, batch_size: int = 100, max_replay_rounds: int = 3):
        self.domain = domain
        self.publisher = publisher
        self.batch_size = batch_size
        self.max_replay_rounds = max_replay_rounds
        self._lock = threading.RLock()
        self._replays: deque[tuple[str, int]] = deque()

    # -------------------------------------------------------------------
    # Queries over the outbox
    # -------------------------------------------------------------------
    def _repo(self):
        return self.domain.repository_for(OutboxRecord)

    def _records(self, **filters) -> list[OutboxRecord]:
        return sorted(scan(self._repo(), **filters), key=lambda record: record.sequence)

    def _pending_order_ids(self, order_id: str | None) -> list[str]:
        """Orders with pending records, oldest first, at most ``batch_size`` of them."""
        if order_id is not None:
            return [str(order_id)]

        pending = scan(self._repo(), status=OutboxStatus.PENDING.value)
        order_ids = []
        for record in sorted(pending, key=lambda r: (r.created_at, r.sequence)):
            if str(record.order_id) not in order_ids:
                order_ids.append(str(record.order_id))
        return order_ids[: self.batch_size]

    def counts(self) -> dict[str, int]:
        with self.domain.domain_context():
            return {status.value: count(self._repo(), status=status.value) for status in OutboxStatus}

    def pending_for(self, order_id: str) -> list[OutboxRecord]:
        with self.domain.domain_context():
            return self._records(order_id=str(order_id), status=OutboxStatus.PENDING.value)

    # -------------------------------------------------------------------
    # Publication
    # -------------------------------------------------------------------
    def _publish(self, record: OutboxRecord) -> bool:
        try:
            self.publisher.publish(record.to_envelope())
        except PublishError as exc:
            record.mark_failed(str(exc))
            self._repo().add(record)
            logger.error(
                "Outbox record left pending",
                event_id=str(record.event_id),
                order_id=str(record.order_id),
                sequence=record.sequence,
                attempts=record.attempts,
                error=str(exc),
            )
            return False

        if record.is_pending:
            record.mark_published()
            self._repo().add(record)
        return True

    def _drain_order(self, order_id: str, report: DispatchReport) -> None:
        for record in self._records(order_id=order_id, status=OutboxStatus.PENDING.value):
            if not self._publish(record):
                report.failed_orders.append(order_id)
                return
            report.published += 1

    def _replay(self, order_id: str, from_sequence: int, report: DispatchReport) -> None:
        records = [r for r in self._records(order_id=str(order_id)) if r.sequence >= from_sequence]
        logger.info("Replaying order events", order_id=order_id, from_sequence=from_sequence, count=len(records))
        for record in records:
            if not self._publish(record):
                report.failed_orders.append(str(order_id))
                return
            report.replayed += 1

    def _requeue_dead_letters(self) -> None:
        first_failed: dict[str, int] = {}
        for letter in self.publisher.channel.take_dead_letters():
            order_id = str(letter.envelope.order_id)
            sequence = letter.envelope.sequence
            first_failed[order_id] = min(first_failed.get(order_id, sequence), sequence)

        for order_id, sequence in first_failed.items():
            logger.warning("Redelivering dead-lettered events", order_id=order_id, from_sequence=sequence)
            self._replays.append((order_id, sequence))

    def _serve_replays(self, report: DispatchReport) -> None:
        rounds = 0
        while self._replays and rounds < self.max_replay_rounds:
            rounds += 1
            requests = []
            while self._replays:
                requests.append(self._replays.popleft())
            for order_id, from_sequence in requests:
                self._replay(order_id, from_sequence, report)

    def dispatch_pending(self, order_id: str | None = None) -> DispatchReport:
        """Publish pending records (all orders, or only ``order_id``), then serve replays and dead letters."""
        report = DispatchReport()
        with self._lock, self.domain.domain_context():
            self._requeue_dead_letters()
            self._serve_replays(report)
            for pending_order_id in self._pending_order_ids(order_id):
                self._drain_order(pending_order_id, report)
            self._requeue_dead_letters()
            self._serve_replays(report)

        if report.published or report.replayed or report.failed_orders:
            logger.info(
                "Outbox dispatch finished",
                published=report.published,
                replayed=report.replayed,
                failed_orders=report.failed_orders,
            )
        return report

    def request_replay(self, order_id: str, from_sequence: int) -> None:
        """Queue a replay of ``order_id`` from ``from_sequence``; served on the next pass."""
        logger.warning("Replay requested", order_id=order_id, from_sequence=from_sequence)
        self._replays.append((str(order_id), max(1, int(from_sequence))))

    def replay(self, order_id: str, from_sequence: int = 1) -> DispatchReport:
        """Re-send an order's events from ``from_sequence`` right away."""
        report = DispatchReport()
        with self._lock, self.domain.domain_context():
            self._replay(str(order_id), max(1, int(from_sequence)), report)
        return report

    @property
    def pending_replays(self) -> int:
        return len(self._replays)

    # -------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------
    async def run(self, interval: float, stop: asyncio.Event | None = None) -> None:
        logger.info("Outbox dispatcher started", interval=interval)
        while stop is None or not stop.is_set():
            try:
                await asyncio.to_thread(self.dispatch_pending)
            except Exception:  # noqa: BLE001
                logger.exception("Outbox dispatch pass failed")
            await asyncio.sleep(interval)
        logger.info("Outbox dispatcher stopped")
