"""Loading and saving Orders inside a command handler's unit of work."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.errors import OrderNotFound

from ordering.order.order import Order
from ordering.outbox.record import OutboxRecord


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise OrderNotFound(str(order_id)) from None


def save_order(order: Order) -> dict:
    """Stage the order's new events in the outbox and persist the order.

    Both writes join the handler's unit of work and commit together.
    Returns the command outcome handed back to the caller.
    """
    outbox = current_domain.repository_for(OutboxRecord)
    event_ids = []
    for event in order._events:
        record = OutboxRecord.for_event(event)
        outbox.add(record)
        event_ids.append(str(record.event_id))

    current_domain.repository_for(Order).add(order)

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "event_ids": event_ids,
    }
