"""Order subsystem FastAPI application.

Commands (POST/PUT /orders...) go to the ordering write side; reads
(GET /orders..., /admin/orders...) are served by the order_views read side.
The gateway in front of this app authenticates callers and forwards them as
X-User-* headers.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bootstrap import Container, get_container
from monitor import create_monitor
from order_views.api.routes import admin_router, view_router
from ordering.api.routes import order_router, outbox_router
from shared.http import register_error_handlers
from shared.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(container: Container) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Drain the outbox in the process that owns the stores, for as long as the app serves."""
        if not container.settings.background_dispatch:
            yield
            return

        stop = asyncio.Event()
        task = asyncio.create_task(container.dispatcher.run(container.settings.dispatch_interval, stop))
        logger.info("Background outbox dispatch started", interval=container.settings.dispatch_interval)
        try:
            yield
        finally:
            stop.set()
            await task

    app = FastAPI(
        title="Order Subsystem API",
        description="Order commands (write side) and order views (read side)",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id to every log line emitted while serving the request."""
        clear_context()
        add_context(request_id=request.headers.get("x-request-id") or str(uuid4()), path=request.url.path)
        try:
            return await call_next(request)
        finally:
            clear_context()

    register_error_handlers(app)

    app.include_router(order_router)
    app.include_router(view_router)
    app.include_router(admin_router)
    app.include_router(outbox_router)
    app.mount("/monitor", create_monitor(container))

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domains": {
                    "ordering": {"name": "ordering"},
                    "order_views": {"name": "order_views"},
                },
                "channel": type(container.channel).__name__,
            }
        )

    return app


# ---------------------------------------------------------------------------
# Module-level app, so uvicorn workers share one container
# ---------------------------------------------------------------------------
configure_logging()
app = create_app(get_container())
