"""Order subsystem monitoring dashboard.

Lightweight FastAPI server for watching the outbox, the projector and the
event channel: queue depths, queued replays, parked events and
dead-lettered deliveries.

The API app mounts this dashboard at ``/monitor`` over its own container,
which is the way to watch the default in-memory deployment. Run standalone
only when both sides use shared database providers and a broker channel;
otherwise this process reports on stores of its own that nothing writes to.

Usage:
    uvicorn monitor:app --app-dir src --host 0.0.0.0 --port 9000
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bootstrap import Container, get_container
from shared.channel import BrokerEventChannel
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _outbox_status(container: Container) -> dict:
    """Outbox counts by status, plus queued replays."""
    try:
        return {
            "status": "ok",
            "counts": container.dispatcher.counts(),
            "pending_replays": container.dispatcher.pending_replays,
        }
    except Exception as e:
        logger.error("Error querying outbox", error=str(e))
        return {"status": "error", "error": str(e)}


def _projector_status(container: Container) -> dict:
    try:
        return {"status": "ok", "parked_events": container.projector.parked_count()}
    except Exception as e:
        logger.error("Error querying projector", error=str(e))
        return {"status": "error", "error": str(e)}


def _channel_status(container: Container) -> dict:
    channel = container.channel
    status = {
        "kind": type(channel).__name__,
        "dead_letters": [
            {
                "event_id": letter.envelope.event_id,
                "order_id": letter.envelope.order_id,
                "sequence": letter.envelope.sequence,
                "consumer": letter.consumer,
                "error": letter.error,
            }
            for letter in channel.dead_letters
        ],
    }
    if isinstance(channel, BrokerEventChannel):
        status["stream"] = channel.stream
    return status


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
def create_monitor(container: Container) -> FastAPI:
    monitor = FastAPI(
        title="Order Subsystem Monitor",
        description="Monitoring dashboard for the outbox, projector and event channel",
    )

    monitor.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @monitor.get("/")
    async def root():
        """Overall system status."""
        return JSONResponse(
            content={
                "service": "Order Subsystem Monitor",
                "domains": ["ordering", "order_views"],
            }
        )

    @monitor.get("/health")
    async def health():
        outbox = _outbox_status(container)
        projector = _projector_status(container)
        channel = _channel_status(container)

        healthy = (
            outbox["status"] == "ok"
            and projector["status"] == "ok"
            and not channel["dead_letters"]
        )
        return JSONResponse(
            content={
                "status": "ok" if healthy else "degraded",
                "outbox": outbox,
                "projector": projector,
                "channel": {"kind": channel["kind"], "dead_letters": len(channel["dead_letters"])},
            }
        )

    @monitor.get("/outbox")
    async def outbox():
        return JSONResponse(content={"domain": "ordering", **_outbox_status(container)})

    @monitor.get("/projector")
    async def projector():
        return JSONResponse(content={"domain": "order_views", **_projector_status(container)})

    @monitor.get("/channel")
    async def channel():
        """Event channel kind and dead-lettered deliveries."""
        return JSONResponse(content=_channel_status(container))

    return monitor


configure_logging()
app = create_monitor(get_container())
