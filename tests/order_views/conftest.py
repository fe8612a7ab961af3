import pytest
from order_views.domain import order_views
from order_views.projector import OrderViewProjector
from order_views.users import UserDirectory
from ordering.domain import ordering
from ordering.outbox.dispatcher import OutboxDispatcher
from ordering.outbox.publisher import EventPublisher
from ordering.service import OrderCommandService
from shared.channel import InMemoryEventChannel
from shared.settings import Settings


@pytest.fixture()
def recorder():
    """Write side publishing to a channel nobody listens to.

    Returns the command service and the channel, whose ``log`` keeps every
    published envelope for the test to feed to a projector in any order.
    """
    channel = InMemoryEventChannel()
    dispatcher = OutboxDispatcher(ordering, EventPublisher(channel, sleep=lambda _: None))
    return OrderCommandService(ordering, dispatcher, Settings()), channel


@pytest.fixture()
def gaps():
    return []


@pytest.fixture()
def users():
    return UserDirectory()


@pytest.fixture()
def projector(users, gaps):
    return OrderViewProjector(order_views, users=users, on_gap=lambda order_id, seq: gaps.append((order_id, seq)))
