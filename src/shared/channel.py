"""Event channel between the ordering write side and its consumers.

The write side only ever calls ``send``; consumers register with
``subscribe``. Two implementations:

- ``InMemoryEventChannel``: in-process, ordered, synchronous fan-out. A
  consumer that raises does not fail the send; the envelope is kept as a dead
  letter until the outbox dispatcher takes it and replays the order from it.
- ``BrokerEventChannel``: appends envelopes to a Protean broker stream.
  ``poll()`` reads the stream and feeds subscribers, which is what the
  background runner does.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from shared.events.ordering import EventEnvelope

logger = structlog.get_logger(__name__)

Consumer = Callable[[EventEnvelope], None]


@dataclass
class DeadLetter:
    envelope: EventEnvelope
    consumer: str
    error: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventChannel(ABC):
    def __init__(self) -> None:
        self._consumers: list[Consumer] = []
        self.dead_letters: list[DeadLetter] = []
        self._dead_letter_lock = threading.Lock()

    def subscribe(self, consumer: Consumer) -> None:
        self._consumers.append(consumer)

    @abstractmethod
    def send(self, envelope: EventEnvelope) -> None:
        """Hand the envelope to the channel. Raises ConnectionError/OSError on transport failure."""

    def _deliver(self, envelope: EventEnvelope) -> None:
        for consumer in list(self._consumers):
            name = getattr(consumer, "__qualname__", type(consumer).__name__)
            try:
                consumer(envelope)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Consumer failed to handle event",
                    consumer=name,
                    event_id=envelope.event_id,
                    event_type=envelope.event_type,
                    order_id=envelope.order_id,
                    error=str(exc),
                )
                with self._dead_letter_lock:
                    self.dead_letters.append(DeadLetter(envelope=envelope, consumer=name, error=str(exc)))

    def take_dead_letters(self) -> list[DeadLetter]:
        """Remove and return the dead letters collected so far."""
        with self._dead_letter_lock:
            letters, self.dead_letters = self.dead_letters, []
        return letters


class InMemoryEventChannel(EventChannel):
    def __init__(self) -> None:
        super().__init__()
        self.log: list[EventEnvelope] = []
        self._lock = threading.RLock()

    def send(self, envelope: EventEnvelope) -> None:
        with self._lock:
            self.log.append(envelope)
            self._deliver(envelope)


class BrokerEventChannel(EventChannel):
    def __init__(self, domain, stream: str, consumer_group: str = "order_views", broker_name: str = "default") -> None:
        super().__init__()
        self.domain = domain
        self.stream = stream
        self.consumer_group = consumer_group
        self.broker_name = broker_name

    def _broker(self):
        broker = self.domain.brokers.get(self.broker_name)
        if broker is None:
            raise ConnectionError(f"No '{self.broker_name}' broker configured for {self.domain.name}")
        return broker

    def send(self, envelope: EventEnvelope) -> None:
        with self.domain.domain_context():
            self._broker().publish(self.stream, envelope.model_dump(mode="json"))

    def poll(self, max_messages: int = 100) -> int:
        """Deliver up to ``max_messages`` envelopes from the stream to subscribers."""
        delivered = 0
        with self.domain.domain_context():
            broker = self._broker()
            while delivered < max_messages:
                message = broker.get_next(self.stream, self.consumer_group)
                if message is None:
                    break
                _, data = message
                self._deliver(EventEnvelope.model_validate(data))
                delivered += 1
        return delivered
