"""Background runner for the Order subsystem.

Drains the ordering outbox into the event channel on a fixed interval and,
with a broker channel, feeds published envelopes to the order_views
projector.

The API app already drains its outbox in the background. This runner is for
deployments where the stores are shared database providers and the channel
is a broker (``ORDERING_CHANNEL=broker``); with the in-memory defaults it
would only see stores of its own.

Usage:
    python src/server.py                  # dispatcher (and broker consumer)
    python src/server.py --interval 0.2   # poll more often
"""

import argparse
import asyncio

import structlog

from bootstrap import Container, get_container
from shared.channel import BrokerEventChannel
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)


async def consume(channel: BrokerEventChannel, interval: float) -> None:
    """Feed envelopes from the broker stream to the subscribed projector."""
    while True:
        delivered = await asyncio.to_thread(channel.poll)
        if not delivered:
            await asyncio.sleep(interval)


async def run(container: Container, interval: float) -> None:
    tasks = [container.dispatcher.run(interval)]
    if isinstance(container.channel, BrokerEventChannel):
        tasks.append(consume(container.channel, interval))

    await asyncio.gather(*tasks)


def main():
    parser = argparse.ArgumentParser(description="Order subsystem background runner")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between outbox passes (default: ORDERING_DISPATCH_INTERVAL)",
    )
    args = parser.parse_args()

    configure_logging()
    container = get_container()
    interval = args.interval if args.interval is not None else container.settings.dispatch_interval

    asyncio.run(run(container, interval))


if __name__ == "__main__":
    main()
