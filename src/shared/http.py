"""HTTP plumbing shared by the ordering and order_views routers.

- ``current_user``: the gateway authenticates requests and forwards the
  caller as ``X-User-Id`` / ``X-User-Roles`` (comma separated) headers, plus
  optional ``X-User-Email`` / ``X-User-Name`` display info.
- ``register_error_handlers``: maps the error taxonomy onto status codes.
"""

from dataclasses import dataclass, field

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError as FieldValidationError

from shared.errors import (
    AccessDenied,
    IllegalCancellation,
    InfrastructureError,
    InvalidTransition,
    OperationTimeout,
    OrderingError,
    OrderNotFound,
    StateError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class UserContext:
    user_id: str
    roles: frozenset[str] = field(default_factory=frozenset)
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


async def current_user(
    x_user_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> UserContext:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    roles = frozenset(role.strip().lower() for role in (x_user_roles or "").split(",") if role.strip())
    return UserContext(user_id=x_user_id, roles=roles, email=x_user_email, name=x_user_name)


def status_code_for(exc: OrderingError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, OrderNotFound):
        return 404
    if isinstance(exc, AccessDenied):
        return 403
    if isinstance(exc, InvalidTransition | IllegalCancellation | StateError):
        return 409
    if isinstance(exc, OperationTimeout):
        return 504
    if isinstance(exc, InfrastructureError):
        return 503
    return 500


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(OrderingError)
    async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
        status_code = status_code_for(exc)
        headers = {"Retry-After": "1"} if exc.retryable else None
        log = logger.warning if status_code < 500 else logger.error
        log("Request failed", path=request.url.path, error=exc.code, message=exc.message)
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(FieldValidationError)
    async def field_validation_handler(request: Request, exc: FieldValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "errors": exc.messages, "retryable": False},
        )


async def admin_user(user: UserContext = Depends(current_user)) -> UserContext:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return user
