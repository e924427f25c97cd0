"""Celery tasks for the finance domain."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.conf import reservation_setting
from shared.domain.exceptions import ReservationError

from .application.command_handlers import settle_payment_outcome
from .gateways import PaymentGatewayError, get_payment_gateway
from .models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)


@shared_task(name="finances.reconcile_pending_payments")
def reconcile_pending_payments() -> dict[str, int]:
    """
    Сверка зависших платежей с Kaspi.

    Платежи в статусе PENDING старше RECONCILE_AFTER_MINUTES опрашиваются
    у провайдера; окончательный ответ применяется тем же обработчиком,
    что и webhook. Запускается каждые 5 минут через Celery Beat.

    Returns:
        dict: {"checked": ..., "settled": ..., "errors": ...}
    """
    cutoff = timezone.now() - timedelta(minutes=int(reservation_setting("RECONCILE_AFTER_MINUTES")))
    stale = Payment.objects.filter(
        status=Payment.Status.PENDING,
        created_at__lte=cutoff,
    ).order_by("created_at")

    gateway = get_payment_gateway()
    checked = settled = errors = 0

    for payment in stale:
        checked += 1
        try:
            result = gateway.check_status(payment)
            if not result.is_terminal:
                logger.info(f"Payment {payment.pk} still pending at provider")
                continue
            settled_payment = settle_payment_outcome(
                result,
                payment_id=payment.pk,
                source=PaymentTransaction.Event.RECONCILE,
                gateway=gateway,
            )
            settled += 1
            logger.info(f"Payment {payment.pk} reconciled as {settled_payment.status}")
        except (PaymentGatewayError, ReservationError) as e:
            errors += 1
            logger.error(f"Error reconciling payment {payment.pk}: {e}", exc_info=True)

    if checked:
        logger.info(f"Reconciliation: checked {checked}, settled {settled}, errors {errors}")

    return {"checked": checked, "settled": settled, "errors": errors}
