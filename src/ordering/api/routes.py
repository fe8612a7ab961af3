"""FastAPI routes for the Ordering write side.

Each route validates the HTTP payload, hands it to ``OrderCommandService``
and returns the command outcome. Reads live in ``order_views.api``.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from shared.http import UserContext, admin_user, current_user

from ordering.api.schemas import (
    CancelOrderRequest,
    CommandResponse,
    ConfirmPaymentRequest,
    CreateOrderRequest,
    UpdateOrderStatusRequest,
)
from ordering.service import OrderCommandService

order_router = APIRouter(prefix="/orders", tags=["orders"])


def get_command_service(request: Request) -> OrderCommandService:
    return request.app.state.container.command_service


def _remember_user(request: Request, user: UserContext) -> None:
    directory = getattr(request.app.state.container, "users", None)
    if directory is not None and (user.email or user.name):
        directory.remember(user.user_id, email=user.email, name=user.name)


@order_router.post("", status_code=201, response_model=CommandResponse)
def create_order(
    body: CreateOrderRequest,
    request: Request,
    user: UserContext = Depends(current_user),
    service: OrderCommandService = Depends(get_command_service),
) -> CommandResponse:
    _remember_user(request, user)
    result = service.create_order(
        user_id=user.user_id,
        items=[item.model_dump(mode="json") for item in body.items],
        shipping_address=body.shipping_address,
        billing_address=body.billing_address,
        notes=body.notes,
    )
    return CommandResponse(**asdict(result))


@order_router.put("/{order_id}/status", response_model=CommandResponse)
def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    user: UserContext = Depends(current_user),
    service: OrderCommandService = Depends(get_command_service),
) -> CommandResponse:
    result = service.update_order_status(
        order_id=order_id,
        new_status=body.status,
        reason=body.reason,
        updated_by=user.user_id,
        estimated_delivery=body.estimated_delivery,
        user_id=user.user_id,
    )
    return CommandResponse(**asdict(result))


@order_router.put("/{order_id}/cancel", response_model=CommandResponse)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    user: UserContext = Depends(current_user),
    service: OrderCommandService = Depends(get_command_service),
) -> CommandResponse:
    result = service.cancel_order(
        order_id=order_id,
        reason=body.reason,
        refund_requested=body.refund_requested,
        user_id=user.user_id,
    )
    return CommandResponse(**asdict(result))


@order_router.put("/{order_id}/payment", response_model=CommandResponse)
def confirm_payment(
    order_id: str,
    body: ConfirmPaymentRequest,
    user: UserContext = Depends(current_user),
    service: OrderCommandService = Depends(get_command_service),
) -> CommandResponse:
    result = service.confirm_order_payment(
        order_id=order_id,
        payment_id=body.payment_id,
        amount=body.amount,
        payment_method=body.payment_method,
        user_id=user.user_id,
    )
    return CommandResponse(**asdict(result))


# ---------------------------------------------------------------------------
# Outbox operations
# ---------------------------------------------------------------------------
outbox_router = APIRouter(prefix="/admin/outbox", tags=["admin"])


def get_dispatcher(request: Request):
    return request.app.state.container.dispatcher


@outbox_router.get("")
def outbox_status(_: UserContext = Depends(admin_user), dispatcher=Depends(get_dispatcher)) -> dict:
    return {"counts": dispatcher.counts(), "pending_replays": dispatcher.pending_replays}


@outbox_router.post("/dispatch")
def dispatch_outbox(_: UserContext = Depends(admin_user), dispatcher=Depends(get_dispatcher)) -> dict:
    return asdict(dispatcher.dispatch_pending())


@outbox_router.post("/replay/{order_id}")
def replay_order(
    order_id: str,
    from_sequence: int = 1,
    _: UserContext = Depends(admin_user),
    dispatcher=Depends(get_dispatcher),
) -> dict:
    return asdict(dispatcher.replay(order_id, from_sequence))
