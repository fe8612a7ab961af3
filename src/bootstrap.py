"""Composition root: wires the write side to the read side through the channel.

    OrderCommandService → outbox → OutboxDispatcher → EventPublisher → EventChannel
        → OrderViewProjector → order_views store ← OrderQueryHandler

The two domains share nothing but the channel. The projector's gap hook is
the dispatcher's replay queue.
"""

from dataclasses import dataclass
from functools import lru_cache

import structlog
from order_views.domain import order_views
from order_views.projector import OrderViewProjector
from order_views.queries import OrderQueryHandler
from order_views.users import UserDirectory
from ordering.domain import ordering
from ordering.outbox.dispatcher import OutboxDispatcher
from ordering.outbox.publisher import EventPublisher
from ordering.service import OrderCommandService
from shared.channel import BrokerEventChannel, EventChannel, InMemoryEventChannel
from shared.settings import Settings

logger = structlog.get_logger(__name__)

_initialized = False


@dataclass
class Container:
    settings: Settings
    channel: EventChannel
    publisher: EventPublisher
    dispatcher: OutboxDispatcher
    users: UserDirectory
    projector: OrderViewProjector
    command_service: OrderCommandService
    query_handler: OrderQueryHandler


def init_domains() -> None:
    """Initialize both domains once per process."""
    global _initialized
    if not _initialized:
        ordering.init()
        order_views.init()
        _initialized = True


def make_channel(settings: Settings) -> EventChannel:
    if settings.channel == "broker":
        return BrokerEventChannel(ordering, stream=settings.channel_stream)
    if settings.channel == "memory":
        return InMemoryEventChannel()
    raise ValueError(f"Unknown channel kind: {settings.channel}")


def build_container(settings: Settings | None = None, channel: EventChannel | None = None, sleep=None) -> Container:
    settings = settings or Settings.from_env()
    channel = channel or make_channel(settings)
    retry_kwargs = {"sleep": sleep} if sleep is not None else {}

    publisher = EventPublisher(
        channel,
        max_attempts=settings.publish_attempts,
        backoff_base=settings.backoff_base,
        backoff_max=settings.backoff_max,
        **retry_kwargs,
    )
    dispatcher = OutboxDispatcher(ordering, publisher, batch_size=settings.dispatch_batch_size)
    users = UserDirectory()
    projector = OrderViewProjector(
        order_views,
        users=users,
        on_gap=dispatcher.request_replay,
        default_transit_days=settings.default_transit_days,
    )
    channel.subscribe(projector)

    logger.info("Order subsystem wired", channel=type(channel).__name__)
    return Container(
        settings=settings,
        channel=channel,
        publisher=publisher,
        dispatcher=dispatcher,
        users=users,
        projector=projector,
        command_service=OrderCommandService(ordering, dispatcher, settings, **retry_kwargs),
        query_handler=OrderQueryHandler(order_views, settings),
    )


@lru_cache(maxsize=1)
def get_container() -> Container:
    init_domains()
    return build_container()
