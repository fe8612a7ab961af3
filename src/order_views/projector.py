"""Projector that keeps the order views in step with the published event stream.

Guarantees, per order:

- an event is applied at most once (``ProcessedEvent`` keyed by event id);
- events are applied in sequence order. An event that arrives ahead of a
  missing one is parked and a replay from the first missing sequence is
  requested; parked events are applied as soon as the gap closes;
- an event older than what the view already reflects is ignored.

The projector is the only writer of the order_views store.
"""

import json
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError
from shared.events.ordering import (
    EventEnvelope,
    OrderCancelled,
    OrderCreated,
    OrderPaymentConfirmed,
    OrderStatusUpdated,
    contract_event,
)
from shared.querying import scan

from order_views.domain import order_views
from order_views.projections.order_timeline import OrderTimelineEntry
from order_views.projections.order_view import OrderView, ParkedEvent, ProcessedEvent
from order_views.tracking import payment_status_for
from order_views.users import UserDirectory

logger = structlog.get_logger(__name__)

# Protean only instantiates events that carry a registered type string;
# contract_event builds these from envelope payloads.
order_views.register_external_event(OrderCreated, "Ordering.OrderCreated.v1")
order_views.register_external_event(OrderStatusUpdated, "Ordering.OrderStatusUpdated.v1")
order_views.register_external_event(OrderCancelled, "Ordering.OrderCancelled.v1")
order_views.register_external_event(OrderPaymentConfirmed, "Ordering.OrderPaymentConfirmed.v1")


class ProjectionOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    STALE = "stale"
    PARKED = "parked"


class OrderViewProjector:
    def __init__(
        self,
        domain: Domain,
        users: UserDirectory | None = None,
        on_gap: Callable[[str, int], None] | None = None,
        default_transit_days: int = 5,
    ) -> None:
        self.domain = domain
        self.users = users or UserDirectory()
        self.on_gap = on_gap
        self.default_transit_days = default_transit_days
        self._lock = threading.RLock()
        self._handlers = {
            OrderCreated: self._on_order_created,
            OrderStatusUpdated: self._on_status_updated,
            OrderCancelled: self._on_order_cancelled,
            OrderPaymentConfirmed: self._on_payment_confirmed,
        }

    def __call__(self, envelope: EventEnvelope) -> None:
        self.handle(envelope)

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def handle(self, envelope: EventEnvelope) -> ProjectionOutcome:
        with self._lock, self.domain.domain_context():
            outcome = self._handle(envelope)

        logger.debug(
            "Envelope projected",
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            order_id=envelope.order_id,
            sequence=envelope.sequence,
            outcome=outcome.value,
        )
        return outcome

    def _handle(self, envelope: EventEnvelope) -> ProjectionOutcome:
        if self._is_processed(envelope.event_id):
            return ProjectionOutcome.DUPLICATE

        view = self._find_view(envelope.order_id)
        last_sequence = view.last_sequence if view else 0

        if envelope.sequence <= last_sequence:
            logger.warning(
                "Ignoring stale event",
                event_id=envelope.event_id,
                order_id=envelope.order_id,
                sequence=envelope.sequence,
                last_sequence=last_sequence,
            )
            return ProjectionOutcome.STALE

        if envelope.sequence > last_sequence + 1:
            self._park(envelope)
            self._request_reconciliation(envelope.order_id, last_sequence + 1)
            return ProjectionOutcome.PARKED

        self._apply(envelope, view)
        self._drain_parked(envelope.order_id)
        return ProjectionOutcome.APPLIED

    # -------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------
    def _find_view(self, order_id: str) -> OrderView | None:
        try:
            return self.domain.repository_for(OrderView).get(str(order_id))
        except ObjectNotFoundError:
            return None

    def _is_processed(self, event_id: str) -> bool:
        try:
            self.domain.repository_for(ProcessedEvent).get(str(event_id))
        except ObjectNotFoundError:
            return False
        return True

    def _park(self, envelope: EventEnvelope) -> None:
        repo = self.domain.repository_for(ParkedEvent)
        try:
            repo.get(envelope.event_id)
            return
        except ObjectNotFoundError:
            pass

        repo.add(
            ParkedEvent(
                event_id=envelope.event_id,
                order_id=envelope.order_id,
                sequence=envelope.sequence,
                envelope=envelope.model_dump_json(),
                parked_at=datetime.now(UTC),
            )
        )
        logger.warning(
            "Sequence gap detected, event parked",
            event_id=envelope.event_id,
            order_id=envelope.order_id,
            sequence=envelope.sequence,
        )

    def _request_reconciliation(self, order_id: str, from_sequence: int) -> None:
        if self.on_gap is None:
            logger.error("Sequence gap with no reconciliation hook", order_id=order_id, from_sequence=from_sequence)
            return
        self.on_gap(str(order_id), from_sequence)

    def _drain_parked(self, order_id: str) -> None:
        repo = self.domain.repository_for(ParkedEvent)
        while True:
            view = self._find_view(order_id)
            parked = sorted(scan(repo, order_id=str(order_id)), key=lambda record: record.sequence)

            next_envelope = None
            for record in parked:
                if record.sequence <= view.last_sequence:
                    repo._dao.delete(record)
                elif record.sequence == view.last_sequence + 1:
                    repo._dao.delete(record)
                    next_envelope = EventEnvelope.model_validate_json(record.envelope)
                    break
                else:
                    break

            if next_envelope is None:
                return
            if not self._is_processed(next_envelope.event_id):
                self._apply(next_envelope, view)

    def parked_count(self, order_id: str | None = None) -> int:
        with self.domain.domain_context():
            repo = self.domain.repository_for(ParkedEvent)
            return len(scan(repo, order_id=str(order_id)) if order_id else scan(repo))

    # -------------------------------------------------------------------
    # Applying events
    # -------------------------------------------------------------------
    def _apply(self, envelope: EventEnvelope, view: OrderView | None) -> None:
        event = contract_event(envelope)
        if event is None:
            logger.info("Skipping unknown event type", event_type=envelope.event_type, event_id=envelope.event_id)
            if view is not None:
                self._save(view, envelope)
            self._mark_processed(envelope)
            return

        view, description = self._handlers[type(event)](event, view)
        self._save(view, envelope)
        self.domain.repository_for(OrderTimelineEntry).add(
            OrderTimelineEntry(
                entry_id=envelope.event_id,
                order_id=envelope.order_id,
                sequence=envelope.sequence,
                event_type=envelope.event_type,
                status=view.status,
                description=description,
                occurred_at=envelope.timestamp,
            )
        )
        self._mark_processed(envelope)

    def _save(self, view: OrderView, envelope: EventEnvelope) -> None:
        view.last_sequence = envelope.sequence
        view.last_event_id = envelope.event_id
        view.projected_at = datetime.now(UTC)
        self.domain.repository_for(OrderView).add(view)

    def _mark_processed(self, envelope: EventEnvelope) -> None:
        self.domain.repository_for(ProcessedEvent).add(
            ProcessedEvent(
                event_id=envelope.event_id,
                order_id=envelope.order_id,
                sequence=envelope.sequence,
                event_type=envelope.event_type,
                processed_at=datetime.now(UTC),
            )
        )

    def _on_order_created(self, event: OrderCreated, view: OrderView | None):
        items = json.loads(event.items) if isinstance(event.items, str) else []
        user = self.users.lookup(str(event.user_id))
        total = Decimal(event.total_amount)

        view = OrderView(
            order_id=str(event.order_id),
            order_number=event.order_number,
            user_id=str(event.user_id),
            user_email=user.email,
            user_name=user.name,
            status="PENDING",
            total_amount=event.total_amount,
            total_value=float(total),
            currency=event.currency or "USD",
            item_count=len(items),
            items=json.dumps(
                [
                    {
                        "product_id": item["product_id"],
                        "quantity": item["quantity"],
                        "unit_price": item["unit_price"],
                    }
                    for item in items
                ]
            ),
            shipping_address=event.shipping_address,
            billing_address=event.billing_address,
            notes=event.notes,
            payment_status=payment_status_for("PENDING"),
            created_at=event.created_at,
            updated_at=event.created_at,
        )
        description = f"Order {event.order_number} placed: {len(items)} item(s), total {total} {view.currency}"
        return view, description

    def _on_status_updated(self, event: OrderStatusUpdated, view: OrderView):
        view.status = event.new_status
        view.updated_at = event.updated_at
        view.payment_status = payment_status_for(event.new_status, view.refund_requested)

        if event.new_status == "SHIPPED":
            view.estimated_delivery = event.estimated_delivery or event.updated_at + timedelta(
                days=self.default_transit_days
            )
        elif event.estimated_delivery:
            view.estimated_delivery = event.estimated_delivery

        if event.new_status == "DELIVERED":
            view.completed_at = event.updated_at
        elif event.new_status == "CANCELLED":
            view.cancelled_at = event.updated_at
            view.cancellation_reason = event.reason

        description = f"Status changed from {event.old_status} to {event.new_status}"
        if event.reason:
            description += f": {event.reason}"
        return view, description

    def _on_order_cancelled(self, event: OrderCancelled, view: OrderView):
        view.status = "CANCELLED"
        view.cancellation_reason = event.reason
        view.refund_requested = bool(event.refund_requested)
        view.cancelled_at = event.cancelled_at
        view.updated_at = event.cancelled_at
        view.payment_status = payment_status_for("CANCELLED", view.refund_requested)
        return view, f"Order cancelled: {event.reason}"

    def _on_payment_confirmed(self, event: OrderPaymentConfirmed, view: OrderView):
        view.status = "PAID"
        view.payment_id = event.payment_id
        view.payment_method = event.payment_method
        view.paid_amount = event.amount
        view.payment_status = payment_status_for("PAID")
        view.updated_at = event.confirmed_at
        return view, f"Payment {event.payment_id} of {event.amount} confirmed"
