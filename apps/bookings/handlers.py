"""Event handlers for the booking domain.

Handlers run after the transaction that produced the event has committed.
"""

import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


def log_booking_event(event: DomainEvent) -> None:
    """Audit trail of every booking lifecycle event."""
    logger.info(f"{type(event).__name__}: {event.to_dict()}")
