"""Publication of outbox envelopes to the event channel, with bounded retries."""

import time

import structlog
from shared.channel import EventChannel
from shared.errors import PublishError
from shared.events.ordering import EventEnvelope
from shared.settings import backoff_delay

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError)


class EventPublisher:
    """Sends envelopes to a channel.

    Transient transport failures are retried ``max_attempts`` times with
    exponential backoff. When every attempt fails the caller gets a
    ``PublishError``, which is an infrastructure error and never a
    validation error.
    """

    def __init__(
        self,
        channel: EventChannel,
        max_attempts: int = 3,
        backoff_base: float = 0.05,
        backoff_max: float = 1.0,
        sleep=time.sleep,
    ) -> None:
        self.channel = channel
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    def publish(self, envelope: EventEnvelope) -> None:
        last_error = None
        for attempt in range(self.max_attempts):
            try:
                self.channel.send(envelope)
                logger.debug(
                    "Event published",
                    event_id=envelope.event_id,
                    event_type=envelope.event_type,
                    order_id=envelope.order_id,
                    sequence=envelope.sequence,
                )
                return
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                logger.warning(
                    "Event publication failed",
                    event_id=envelope.event_id,
                    order_id=envelope.order_id,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                )
                if attempt + 1 < self.max_attempts:
                    self._sleep(backoff_delay(attempt, self.backoff_base, self.backoff_max))

        raise PublishError(
            f"Could not publish {envelope.event_type} {envelope.event_id}: {last_error}",
            event_id=envelope.event_id,
            order_id=envelope.order_id,
            attempts=self.max_attempts,
        ) from last_error
