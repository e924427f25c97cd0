"""Event handlers for the finance domain."""

import logging

from .domain.events import PaymentRefunded, PaymentSettled

logger = logging.getLogger(__name__)


def log_payment_settled(event: PaymentSettled) -> None:
    if event.status == "failed":
        logger.warning(f"Payment {event.payment_id} failed: {event.failure_reason} ({event.to_dict()})")
    else:
        logger.info(f"Payment {event.payment_id} completed for booking {event.booking_id}")


def log_payment_refunded(event: PaymentRefunded) -> None:
    if event.succeeded:
        logger.info(f"Payment {event.payment_id} refunded (booking {event.booking_id})")
    else:
        logger.error(f"Refund of payment {event.payment_id} failed, manual follow-up required")
