"""Error taxonomy shared by the write and read sides of the Order subsystem.

Three families, each with a different caller reaction:

- ``ValidationError``: the input is wrong. Not retryable; carries the
  offending field and the violated constraint.
- ``StateError``: the input is well formed but breaks a domain rule
  (unknown order, illegal transition, ownership). Not retryable.
- ``InfrastructureError``: persistence or publication failed. Retryable with
  backoff; escalated to ``ServiceUnavailable`` once attempts are exhausted.
"""

from typing import Any


class OrderingError(Exception):
    code = "ordering_error"
    retryable = False

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **{key: value for key, value in self.context.items() if value is not None},
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class ValidationError(OrderingError):
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, constraint: str | None = None, **context: Any) -> None:
        super().__init__(message, field=field, constraint=constraint, **context)
        self.field = field
        self.constraint = constraint


class EmptyOrder(ValidationError):
    code = "empty_order"

    def __init__(self) -> None:
        super().__init__("An order needs at least one item", field="items", constraint="non_empty")


class InvalidItem(ValidationError):
    code = "invalid_item"

    def __init__(self, index: int, field: str, constraint: str, value: Any = None) -> None:
        super().__init__(
            f"Item {index} has an invalid {field}: {value!r} ({constraint})",
            field=f"items[{index}].{field}",
            constraint=constraint,
        )
        self.index = index


class AmountMismatch(ValidationError):
    code = "amount_mismatch"

    def __init__(self, expected, actual) -> None:
        super().__init__(
            f"Payment amount {actual} does not match order total {expected}",
            field="amount",
            constraint=f"equals {expected}",
            expected=str(expected),
            actual=str(actual),
        )
        self.expected = expected
        self.actual = actual


class InvalidQuery(ValidationError):
    code = "invalid_query"


# ---------------------------------------------------------------------------
# Domain state
# ---------------------------------------------------------------------------
class StateError(OrderingError):
    code = "state_error"


class OrderNotFound(StateError):
    code = "order_not_found"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} does not exist", order_id=order_id)
        self.order_id = order_id


class InvalidTransition(StateError):
    code = "invalid_transition"

    def __init__(self, from_status, to_status) -> None:
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        super().__init__(
            f"Cannot transition from {from_value} to {to_value}",
            from_status=from_value,
            to_status=to_value,
        )
        self.from_status = from_value
        self.to_status = to_value


class IllegalCancellation(StateError):
    code = "illegal_cancellation"

    def __init__(self, status, allowed) -> None:
        status_value = getattr(status, "value", status)
        allowed_values = sorted(getattr(s, "value", s) for s in allowed)
        super().__init__(
            f"Cannot cancel an order in {status_value} state",
            status=status_value,
            allowed=allowed_values,
        )
        self.status = status_value


class AccessDenied(StateError):
    code = "access_denied"

    def __init__(self, order_id: str, user_id: str | None) -> None:
        super().__init__(f"User {user_id} may not access order {order_id}", order_id=order_id)
        self.order_id = order_id
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------
class InfrastructureError(OrderingError):
    code = "infrastructure_error"
    retryable = True


class PersistenceError(InfrastructureError):
    code = "persistence_error"


class PublishError(InfrastructureError):
    code = "publish_error"

    def __init__(self, message: str, event_id: str | None = None, order_id: str | None = None, attempts: int = 0) -> None:
        super().__init__(message, event_id=event_id, order_id=order_id, attempts=attempts)
        self.event_id = event_id
        self.order_id = order_id
        self.attempts = attempts


class ConcurrencyConflict(InfrastructureError):
    code = "concurrency_conflict"


class ServiceUnavailable(InfrastructureError):
    code = "service_unavailable"


class OperationTimeout(InfrastructureError):
    code = "timeout"

    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(f"{operation} did not finish within {seconds}s", operation=operation, timeout=seconds)
        self.operation = operation
        self.seconds = seconds
