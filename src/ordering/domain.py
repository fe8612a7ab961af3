"""Ordering bounded context: the write side of the Order subsystem.

Validates commands against the order lifecycle, persists the event-sourced
Order aggregate, and stages every resulting event in a transactional outbox
for publication to the read side.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
