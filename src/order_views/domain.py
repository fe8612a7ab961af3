"""Order views bounded context: the read side of the Order subsystem.

Owns its own store. It learns about orders only through the envelopes the
ordering context publishes, and serves listings, detail, tracking and
analytics from denormalised projections that may lag the write side.
"""

import structlog
from protean.domain import Domain

order_views = Domain(name="order_views")

logger = structlog.get_logger(__name__)
