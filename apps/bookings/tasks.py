"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import ReservationError
from shared.domain.value_objects import Actor

from .application.command_handlers import apply_transition
from .domain.state_machine import Action
from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (запускаются автоматически через Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_pending_bookings")
def expire_pending_bookings() -> dict[str, int]:
    """
    Автоматическая отмена просроченных броней.

    Ищет бронирования со статусом PENDING, у которых истек expires_at,
    и отменяет их от имени системы, освобождая даты.

    Запускается каждую минуту через Celery Beat.

    Returns:
        dict: {"expired": количество отмененных броней}
    """
    now = timezone.now()
    expired_count = 0

    expired_ids = list(
        Booking.objects.filter(
            status=Booking.Status.PENDING,
            expires_at__lte=now,
        ).values_list("pk", flat=True)
    )

    for booking_id in expired_ids:
        try:
            booking = apply_transition(
                booking_id,
                Action.CANCEL,
                Actor.system(),
                now=now,
                reason="Время подтверждения истекло",
            )
            expired_count += 1
            logger.info(f"Booking {booking.booking_code} expired automatically")
        except ReservationError as e:
            # Confirmed or cancelled concurrently; nothing to expire
            logger.info(f"Booking {booking_id} not expired: {e}")

    if expired_count > 0:
        logger.info(f"Expired {expired_count} pending bookings")

    return {"expired": expired_count}


@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """
    Автоматическое завершение броней после выезда.

    Подтвержденные бронирования, у которых наступила дата выезда,
    переводятся в COMPLETED от имени системы.

    Запускается каждый час.

    Returns:
        dict: {"completed": количество завершенных броней}
    """
    now = timezone.now()
    today = timezone.localdate(now)
    completed_count = 0

    finished_ids = list(
        Booking.objects.filter(
            status=Booking.Status.CONFIRMED,
            check_out__lte=today,
        ).values_list("pk", flat=True)
    )

    for booking_id in finished_ids:
        try:
            booking = apply_transition(booking_id, Action.COMPLETE, Actor.system(), now=now)
            completed_count += 1
            logger.info(f"Booking {booking.booking_code} completed after check-out")
        except ReservationError as e:
            logger.error(f"Error completing booking {booking_id}: {e}", exc_info=True)

    if completed_count > 0:
        logger.info(f"Completed {completed_count} finished bookings")

    return {"completed": completed_count}
