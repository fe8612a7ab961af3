"""Entry point of the write side.

``OrderCommandService`` turns caller input into ordering commands and runs
them with the guarantees the rest of the system relies on:

- input is validated before anything is loaded or written;
- commands for one order never overlap (per-order lock, backed by the event
  store's expected-version check);
- every command is bounded by ``command_timeout``;
- transient persistence failures are retried with backoff and surface as
  ``ServiceUnavailable`` (or ``ConcurrencyConflict``) once attempts run out;
- a command is complete when the order and its outbox records commit.
  Publication is attempted right after, but a failed publish leaves the
  records pending for the dispatcher instead of failing the command.
"""

import json
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog
from protean.domain import Domain
from protean.exceptions import ExpectedVersionError
from protean.exceptions import ValidationError as FieldValidationError
from shared.deadline import run_with_timeout
from shared.errors import (
    ConcurrencyConflict,
    InfrastructureError,
    PersistenceError,
    ServiceUnavailable,
    ValidationError,
)
from shared.settings import Settings, backoff_delay

from ordering.order.cancellation import CancelOrder
from ordering.order.creation import CreateOrder
from ordering.order.payment import ConfirmOrderPayment
from ordering.order.status_update import UpdateOrderStatus
from ordering.order.validation import (
    MAX_NOTES_LENGTH,
    MAX_REASON_LENGTH,
    optional_text,
    parse_amount,
    parse_status,
    require_text,
    validate_addresses,
    validate_items,
)
from ordering.outbox.dispatcher import OutboxDispatcher

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError, PersistenceError)


@dataclass(frozen=True)
class CommandResult:
    command_id: str
    order_id: str
    order_number: str | None
    status: str
    event_ids: list[str] = field(default_factory=list)
    published: bool = False


class OrderLocks:
    """One lock per order id, dropped again when nobody holds or waits for it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # order_id -> [lock, users]

    @contextmanager
    def hold(self, order_id: str, timeout: float):
        with self._guard:
            entry = self._locks.setdefault(order_id, [threading.Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise ConcurrencyConflict(
                    f"Order {order_id} is busy with another command",
                    order_id=order_id,
                )
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(order_id, None)

    def __len__(self) -> int:
        return len(self._locks)


def _from_field_errors(exc: FieldValidationError) -> ValidationError:
    messages = exc.messages if isinstance(exc.messages, dict) else {"command": [str(exc.messages)]}
    field_name, problems = next(iter(messages.items()), ("command", ["invalid"]))
    constraint = problems[0] if isinstance(problems, list) and problems else str(problems)
    return ValidationError(f"{field_name}: {constraint}", field=field_name, constraint=constraint, errors=messages)


class OrderCommandService:
    def __init__(
        self,
        domain: Domain,
        dispatcher: OutboxDispatcher | None = None,
        settings: Settings | None = None,
        sleep=time.sleep,
    ) -> None:
        self.domain = domain
        self.dispatcher = dispatcher
        self.settings = settings or Settings()
        self.locks = OrderLocks()
        self._sleep = sleep

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def create_order(self, user_id, items, shipping_address, billing_address, notes=None, currency="USD"):
        user_id = require_text(user_id, "user_id", 255)
        normalised = validate_items(items)
        shipping, billing = validate_addresses(shipping_address, billing_address)
        notes = optional_text(notes, "notes", MAX_NOTES_LENGTH)

        return self._execute(
            "create_order",
            None,
            lambda: CreateOrder(
                user_id=user_id,
                items=json.dumps(normalised),
                shipping_address=shipping,
                billing_address=billing,
                notes=notes,
                currency=currency or "USD",
            ),
        )

    def update_order_status(
        self,
        order_id,
        new_status,
        reason=None,
        updated_by=None,
        estimated_delivery=None,
        user_id=None,
    ):
        order_id = require_text(order_id, "order_id", 255)
        status = parse_status(new_status)
        reason = optional_text(reason, "reason", MAX_REASON_LENGTH)

        return self._execute(
            "update_order_status",
            order_id,
            lambda: UpdateOrderStatus(
                user_id=user_id,
                order_id=order_id,
                new_status=status.value,
                reason=reason,
                updated_by=updated_by,
                estimated_delivery=estimated_delivery,
            ),
        )

    def cancel_order(self, order_id, reason, refund_requested=False, user_id=None):
        order_id = require_text(order_id, "order_id", 255)
        reason = require_text(reason, "reason", MAX_REASON_LENGTH)

        return self._execute(
            "cancel_order",
            order_id,
            lambda: CancelOrder(
                user_id=user_id,
                order_id=order_id,
                reason=reason,
                refund_requested=bool(refund_requested),
            ),
        )

    def confirm_order_payment(self, order_id, payment_id, amount, payment_method=None, user_id=None):
        order_id = require_text(order_id, "order_id", 255)
        payment_id = require_text(payment_id, "payment_id", 255)
        amount = parse_amount(amount)
        payment_method = optional_text(payment_method, "payment_method", 50)

        return self._execute(
            "confirm_order_payment",
            order_id,
            lambda: ConfirmOrderPayment(
                user_id=user_id,
                order_id=order_id,
                payment_id=payment_id,
                amount=str(amount),
                payment_method=payment_method,
            ),
        )

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------
    def _execute(self, operation, order_id, build_command) -> CommandResult:
        return run_with_timeout(
            operation,
            self.settings.command_timeout,
            self._run,
            operation,
            order_id,
            build_command,
        )

    def _run(self, operation, order_id, build_command) -> CommandResult:
        with self.domain.domain_context():
            try:
                command = build_command()
            except FieldValidationError as exc:
                raise _from_field_errors(exc) from exc

            if order_id is None:
                outcome = self._process(operation, command)
            else:
                with self.locks.hold(order_id, self.settings.lock_timeout):
                    outcome = self._process(operation, command)

            logger.info(
                "Command committed",
                operation=operation,
                command_id=str(command.command_id),
                order_id=outcome["order_id"],
                status=outcome["status"],
                events=len(outcome["event_ids"]),
            )

            published = self._dispatch_after_commit(outcome["order_id"])

        return CommandResult(
            command_id=str(command.command_id),
            order_id=outcome["order_id"],
            order_number=outcome.get("order_number"),
            status=outcome["status"],
            event_ids=outcome["event_ids"],
            published=published,
        )

    def _process(self, operation, command) -> dict:
        attempts = max(1, self.settings.persist_attempts)
        for attempt in range(attempts):
            try:
                return self.domain.process(command, asynchronous=False)
            except FieldValidationError as exc:
                raise _from_field_errors(exc) from exc
            except ExpectedVersionError as exc:
                last_error, escalate = exc, ConcurrencyConflict
            except TRANSIENT_ERRORS as exc:
                last_error, escalate = exc, ServiceUnavailable

            logger.warning(
                "Command failed on infrastructure, retrying",
                operation=operation,
                attempt=attempt + 1,
                max_attempts=attempts,
                error=str(last_error),
            )
            if attempt + 1 < attempts:
                self._sleep(backoff_delay(attempt, self.settings.backoff_base, self.settings.backoff_max))

        logger.error("Command abandoned after retries", operation=operation, attempts=attempts)
        raise escalate(
            f"{operation} failed after {attempts} attempts: {last_error}",
            operation=operation,
            attempts=attempts,
        ) from last_error

    def _dispatch_after_commit(self, order_id: str) -> bool:
        if self.dispatcher is None or not self.settings.dispatch_on_commit:
            return False

        try:
            report = self.dispatcher.dispatch_pending(order_id)
        except (InfrastructureError, ConnectionError, OSError) as exc:
            logger.warning("Post-commit dispatch failed; events stay in the outbox", order_id=order_id, error=str(exc))
            return False

        return order_id not in report.failed_orders
