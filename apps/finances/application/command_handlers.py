"""
Payment Command Handlers

Settlement Coordinator use cases:
- PayBookingCommand: Charge a confirmed booking exactly once per idempotency key
- SettlePaymentOutcomeCommand: Apply a gateway outcome (sync reply, webhook
  or reconciliation poll) to a pending payment

The gateway is never called inside a database transaction. A payment row is
inserted as PENDING first, the provider is called, and the outcome is then
applied with a conditional update, so duplicate or late outcomes are no-ops.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import logging

from django.db import transaction
from django.utils import timezone

from shared.application.message_bus import message_bus
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    AmountMismatch,
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    NotPayable,
    Timeout,
)
from shared.domain.value_objects import Actor
from apps.bookings.application.command_handlers import (
    TransitionBookingCommand,
    TransitionBookingHandler,
)
from apps.bookings.domain.state_machine import Action, BookingStatus
from apps.bookings.models import Booking
from apps.finances.domain.events import PaymentRefunded, PaymentSettled
from apps.finances.gateways import (
    GatewayResult,
    Outcome,
    PaymentGateway,
    PaymentGatewayError,
    get_payment_gateway,
)
from apps.finances.models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)

BOOKING_NOT_PAYABLE = 'booking_not_payable'


# ===== Commands =====

@dataclass
class PayBookingCommand:
    """Command to pay for a confirmed booking"""
    booking_id: int
    idempotency_key: str
    amount: Any
    currency: str = 'KZT'
    method: str = Payment.Method.KASPI
    payment_token: str = ''
    actor: Optional[Actor] = None


@dataclass
class SettlePaymentOutcomeCommand:
    """
    Command to apply a provider outcome to a payment

    The payment is located by ``payment_id``, ``transaction_id`` (ours)
    or ``provider_reference`` (theirs), in that order.
    """
    outcome: str
    payment_id: Optional[int] = None
    transaction_id: Optional[str] = None
    provider_reference: Optional[str] = None
    failure_reason: str = ''
    payload: Dict[str, Any] = field(default_factory=dict)
    source: str = PaymentTransaction.Event.CALLBACK


# ===== Command Handlers =====

class PayBookingHandler:
    """
    Handler for PayBooking command

    1. Replay: an existing (booking, key) row is returned unchanged
    2. Validate status, actor and amount against the booking's own quote
    3. Insert PENDING payment (unique indexes arbitrate concurrent requests)
    4. Call the gateway outside the transaction
    5. Apply the outcome through SettlePaymentOutcomeHandler
    """

    def __init__(self, gateway: Optional[PaymentGateway] = None):
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    def handle(self, command: PayBookingCommand) -> Payment:
        key = (command.idempotency_key or '').strip()
        if not key or len(key) > 128:
            raise InvalidInput("Idempotency key is required (max 128 characters)")

        existing = self._find(command.booking_id, key)
        if existing is not None:
            logger.info(
                f"Idempotent replay for booking {command.booking_id}, key {key}: "
                f"payment {existing.pk} ({existing.status})"
            )
            return existing

        amount = self._parse_amount(command.amount)
        currency = (command.currency or '').upper()
        if command.method not in Payment.Method.values:
            raise InvalidInput(f"Unknown payment method: {command.method}")

        try:
            with DjangoUnitOfWork():
                # Serialized behind a same-key request that already committed
                winner = self._find(command.booking_id, key)
                if winner is not None:
                    logger.info(f"Concurrent request with key {key} already created payment {winner.pk}")
                    return winner

                booking = (
                    Booking.objects.select_related('property')
                    .filter(pk=command.booking_id)
                    .first()
                )
                if booking is None:
                    raise NotFound(f"Booking {command.booking_id} not found", booking_id=command.booking_id)

                if command.actor is not None and not self._may_pay(booking, command.actor):
                    raise Forbidden(
                        f"Actor {command.actor} may not pay for booking {booking.booking_code}",
                        booking_id=booking.pk,
                    )

                if booking.status != BookingStatus.CONFIRMED:
                    raise NotPayable(
                        f"Booking {booking.booking_code} is {booking.status}, only confirmed bookings are payable",
                        booking_id=booking.pk,
                        status=booking.status,
                    )

                expected = booking.quote()
                if amount != expected.total or currency != expected.currency:
                    raise AmountMismatch(
                        f"Expected {expected.total} {expected.currency}, got {amount} {currency}",
                        expected=expected.total,
                        expected_currency=expected.currency,
                    )

                payment = Payment.objects.create(
                    booking=booking,
                    idempotency_key=key,
                    status=Payment.Status.PENDING,
                    method=command.method,
                    amount=amount,
                    currency=currency,
                    transaction_id=Payment.generate_transaction_id(),
                    provider=self.gateway.name,
                    metadata={'actor': str(command.actor) if command.actor else 'system'},
                )
        except Conflict:
            # Lost an insert race: same key replays the winner, another key waits
            winner = self._find(command.booking_id, key)
            if winner is not None:
                logger.info(f"Concurrent request with key {key} already created payment {winner.pk}")
                return winner
            raise Conflict(
                "Payment for this booking is already in progress, retry later.",
                booking_id=command.booking_id,
            )

        logger.info(
            f"Payment {payment.pk} ({payment.transaction_id}) created for booking "
            f"{booking.booking_code}: {amount} {currency}"
        )

        try:
            result = self.gateway.charge(payment, command.payment_token)
        except PaymentGatewayError as e:
            logger.warning(f"Gateway did not settle payment {payment.pk}, left pending: {e}")
            raise Timeout(
                "Payment provider did not respond, the payment will be reconciled.",
                payment_id=payment.pk,
            ) from e

        return SettlePaymentOutcomeHandler(gateway=self.gateway).handle(
            SettlePaymentOutcomeCommand(
                outcome=result.outcome,
                payment_id=payment.pk,
                provider_reference=result.provider_reference,
                failure_reason=result.failure_reason,
                payload=result.payload,
                source=PaymentTransaction.Event.CHARGE,
            )
        )

    @staticmethod
    def _find(booking_id, key) -> Optional[Payment]:
        return Payment.objects.filter(booking_id=booking_id, idempotency_key=key).first()

    @staticmethod
    def _parse_amount(value) -> Decimal:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInput(f"Invalid amount: {value!r}")
        if not amount.is_finite() or amount <= 0:
            raise InvalidInput(f"Amount must be positive: {value!r}")
        return amount

    @staticmethod
    def _may_pay(booking: Booking, actor: Actor) -> bool:
        return (
            actor.is_admin
            or actor.is_system
            or actor.id in (booking.guest_id, booking.property.owner_id)
        )


class SettlePaymentOutcomeHandler:
    """
    Handler for SettlePaymentOutcome command

    Only a PENDING payment can change; the update is conditional on that
    status, so the second of two identical callbacks updates nothing.
    A successful payment completes the booking in the same transaction.
    """

    def __init__(self, gateway: Optional[PaymentGateway] = None):
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    def handle(self, command: SettlePaymentOutcomeCommand) -> Payment:
        if command.outcome not in (Outcome.SUCCEEDED, Outcome.FAILED, Outcome.PENDING):
            raise InvalidInput(f"Unknown payment outcome: {command.outcome}")

        payment = self._locate(command)
        now = timezone.now()
        reference = command.provider_reference or ''

        with DjangoUnitOfWork() as uow:
            PaymentTransaction.objects.create(
                payment=payment,
                event=command.source,
                payload=command.payload or {},
                status=command.outcome,
            )

            if command.outcome == Outcome.PENDING:
                if reference:
                    Payment.objects.filter(
                        pk=payment.pk,
                        status=Payment.Status.PENDING,
                        provider_reference='',
                    ).update(provider_reference=reference, updated_at=now)
                logger.info(f"Payment {payment.pk} still pending at provider ({reference or 'no reference'})")
                payment.refresh_from_db()
                return payment

            updates = {'processed_at': now, 'updated_at': now}
            if reference:
                updates['provider_reference'] = reference
            refund_needed = False

            if command.outcome == Outcome.SUCCEEDED:
                booking_status = (
                    Booking.objects.filter(pk=payment.booking_id)
                    .values_list('status', flat=True)
                    .first()
                )
                if booking_status == BookingStatus.CONFIRMED:
                    updates.update(status=Payment.Status.COMPLETED, failure_reason='')
                else:
                    updates.update(status=Payment.Status.FAILED, failure_reason=BOOKING_NOT_PAYABLE)
                    refund_needed = True
            else:
                updates.update(
                    status=Payment.Status.FAILED,
                    failure_reason=(command.failure_reason or 'declined')[:255],
                )

            updated = Payment.objects.filter(
                pk=payment.pk,
                status=Payment.Status.PENDING,
            ).update(**updates)

            if not updated:
                payment.refresh_from_db()
                logger.info(
                    f"Payment {payment.pk} already {payment.status}, "
                    f"duplicate '{command.outcome}' outcome ignored"
                )
                return payment

            if updates['status'] == Payment.Status.COMPLETED:
                TransitionBookingHandler().handle(TransitionBookingCommand(
                    booking_id=payment.booking_id,
                    action=Action.COMPLETE,
                    actor=Actor.system(),
                    now=now,
                ))

            uow.add_event(PaymentSettled(
                aggregate_id=payment.pk,
                payment_id=payment.pk,
                booking_id=payment.booking_id,
                status=updates['status'],
                amount=payment.amount,
                currency=payment.currency,
                provider_reference=reference or payment.provider_reference,
                failure_reason=updates['failure_reason'],
            ))

            if refund_needed:
                logger.warning(
                    f"Payment {payment.pk} succeeded for booking {payment.booking_id} "
                    f"in status {booking_status}; refund scheduled"
                )
                payment_id = payment.pk
                transaction.on_commit(lambda: self.refund(payment_id))

        payment.refresh_from_db()
        logger.info(f"Payment {payment.pk} settled as {payment.status}")
        return payment

    def refund(self, payment_id) -> bool:
        """Return money for a payment that could not be applied to its booking."""
        payment = Payment.objects.get(pk=payment_id)
        try:
            succeeded = self.gateway.refund(payment, reason=BOOKING_NOT_PAYABLE)
        except PaymentGatewayError as e:
            logger.error(f"Refund of payment {payment.pk} failed: {e}", exc_info=True)
            succeeded = False

        PaymentTransaction.objects.create(
            payment=payment,
            event=PaymentTransaction.Event.REFUND,
            payload={'reason': BOOKING_NOT_PAYABLE},
            status='succeeded' if succeeded else 'failed',
        )
        if not succeeded:
            logger.error(f"Refund of payment {payment.pk} ({payment.provider_reference}) needs manual follow-up")

        message_bus.publish_events([PaymentRefunded(
            aggregate_id=payment.pk,
            payment_id=payment.pk,
            booking_id=payment.booking_id,
            succeeded=succeeded,
        )])
        return succeeded

    @staticmethod
    def _locate(command: SettlePaymentOutcomeCommand) -> Payment:
        queryset = Payment.objects.all()
        payment = None
        if command.payment_id is not None:
            payment = queryset.filter(pk=command.payment_id).first()
        elif command.transaction_id:
            payment = queryset.filter(transaction_id=command.transaction_id).first()
        elif command.provider_reference:
            payment = queryset.filter(provider_reference=command.provider_reference).first()

        if payment is None:
            raise NotFound(
                "Payment not found",
                payment_id=command.payment_id,
                transaction_id=command.transaction_id,
                provider_reference=command.provider_reference,
            )
        return payment


# ===== Entry points =====

def pay(booking_id, idempotency_key, amount, currency='KZT', method=Payment.Method.KASPI,
        payment_token='', actor: Optional[Actor] = None, gateway: Optional[PaymentGateway] = None) -> Payment:
    """Charge a confirmed booking; repeated keys return the original payment."""
    return PayBookingHandler(gateway=gateway).handle(PayBookingCommand(
        booking_id=booking_id,
        idempotency_key=idempotency_key,
        amount=amount,
        currency=currency,
        method=method,
        payment_token=payment_token,
        actor=actor,
    ))


def settle_payment_outcome(result: GatewayResult, *, payment_id=None, transaction_id=None,
                           source=PaymentTransaction.Event.CALLBACK,
                           gateway: Optional[PaymentGateway] = None) -> Payment:
    """Apply a provider result to its payment; duplicates are no-ops."""
    return SettlePaymentOutcomeHandler(gateway=gateway).handle(SettlePaymentOutcomeCommand(
        outcome=result.outcome,
        payment_id=payment_id,
        transaction_id=transaction_id,
        provider_reference=result.provider_reference or None,
        failure_reason=result.failure_reason,
        payload=result.payload,
        source=source,
    ))
