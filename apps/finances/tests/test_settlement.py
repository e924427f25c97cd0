"""Tests for paying bookings and applying gateway outcomes."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

from django.db import connection
from django.test import TestCase, TransactionTestCase

from apps.bookings.application.command_handlers import apply_transition, create_booking
from apps.bookings.domain.state_machine import Action
from apps.bookings.models import Booking
from apps.finances.application.command_handlers import (
    PayBookingCommand,
    PayBookingHandler,
    SettlePaymentOutcomeHandler,
    pay,
    settle_payment_outcome,
)
from apps.finances.gateways import GatewayResult, GatewayTimeout, Outcome
from apps.finances.models import Payment, PaymentTransaction
from apps.finances.testing import ScriptedGateway
from apps.properties.models import Property, PropertyFee
from apps.users.models import User
from shared.domain.exceptions import (
    AmountMismatch,
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    NotPayable,
    ReservationError,
    Timeout,
)


class SettlementTestCase(TestCase):
    def setUp(self) -> None:
        ScriptedGateway.reset()
        self.gateway = ScriptedGateway()
        self.owner = User.objects.create_user(
            email="owner-pay@example.com",
            password="x",
            role=User.RoleChoices.REALTOR,
        )
        self.guest = User.objects.create_user(email="guest-pay@example.com", password="x")
        self.property = Property.objects.create(
            owner=self.owner,
            title="Апартаменты",
            status=Property.Status.ACTIVE,
            base_price=Decimal("120.00"),
            max_guests=2,
        )
        self.booking = create_booking(self.property.pk, self.guest.pk, date(2025, 9, 1), date(2025, 9, 5))
        apply_transition(self.booking.pk, Action.CONFIRM, self.owner.as_actor())

    def pay(self, key: str, amount="480.00", **kwargs) -> Payment:
        kwargs.setdefault("actor", self.guest.as_actor())
        return pay(self.booking.pk, key, amount, gateway=self.gateway, **kwargs)


class PayBookingTests(SettlementTestCase):
    def test_idempotent_payment_scenario(self) -> None:
        payment = self.pay("k1")

        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.amount, Decimal("480.00"))
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)

        replay = self.pay("k1")
        self.assertEqual(replay.pk, payment.pk)
        self.assertEqual(replay.status, Payment.Status.COMPLETED)
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(len(ScriptedGateway.charges), 1)

        with self.assertRaises(NotPayable):
            self.pay("k2")
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(len(ScriptedGateway.charges), 1)

    def test_pending_booking_is_not_payable(self) -> None:
        pending = create_booking(self.property.pk, self.guest.pk, date(2025, 10, 1), date(2025, 10, 3))

        with self.assertRaises(NotPayable):
            pay(pending.pk, "k1", "240.00", gateway=self.gateway)
        self.assertFalse(Payment.objects.exists())

    def test_amount_must_match_booking_price(self) -> None:
        with self.assertRaises(AmountMismatch):
            self.pay("k1", amount="479.99")
        with self.assertRaises(AmountMismatch):
            self.pay("k1", currency="USD")
        self.assertFalse(Payment.objects.exists())

    def test_amount_matches_price_with_fees(self) -> None:
        PropertyFee.objects.create(property=self.property, name="cleaning", amount=Decimal("30"))
        PropertyFee.objects.create(property=self.property, name="service", kind="percent", amount=Decimal("10"))
        booking = create_booking(self.property.pk, self.guest.pk, date(2025, 11, 1), date(2025, 11, 4))
        apply_transition(booking.pk, Action.CONFIRM, self.owner.as_actor())

        # 360 + 30 + 36
        payment = pay(booking.pk, "fees", "426.00", gateway=self.gateway)
        self.assertEqual(payment.status, Payment.Status.COMPLETED)

    def test_invalid_requests(self) -> None:
        with self.assertRaises(InvalidInput):
            self.pay("")
        with self.assertRaises(InvalidInput):
            self.pay("k1", amount="-480")
        with self.assertRaises(InvalidInput):
            self.pay("k1", amount="abc")
        with self.assertRaises(NotFound):
            pay(999999, "k1", "480.00", gateway=self.gateway)

    def test_stranger_cannot_pay(self) -> None:
        stranger = User.objects.create_user(email="stranger-pay@example.com", password="x")
        with self.assertRaises(Forbidden):
            self.pay("k1", actor=stranger.as_actor())

    def test_declined_payment_leaves_booking_payable(self) -> None:
        ScriptedGateway.enqueue(ScriptedGateway.failed("insufficient_funds"))

        failed = self.pay("k1")
        self.assertEqual(failed.status, Payment.Status.FAILED)
        self.assertEqual(failed.failure_reason, "insufficient_funds")
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)

        # Same key replays the failure, a fresh key may try again
        self.assertEqual(self.pay("k1").pk, failed.pk)
        retry = self.pay("k2")
        self.assertEqual(retry.status, Payment.Status.COMPLETED)
        self.assertEqual(Payment.objects.filter(status=Payment.Status.COMPLETED).count(), 1)

    def test_gateway_timeout_leaves_payment_pending(self) -> None:
        ScriptedGateway.enqueue(GatewayTimeout("read timed out"))

        with self.assertRaises(Timeout) as ctx:
            self.pay("k1")
        self.assertTrue(ctx.exception.retryable)

        payment = Payment.objects.get()
        self.assertEqual(payment.status, Payment.Status.PENDING)

        # Retrying with the same key replays the pending row without charging again
        replay = self.pay("k1")
        self.assertEqual(replay.pk, payment.pk)
        self.assertEqual(len(ScriptedGateway.charges), 1)

        # Another key must wait for the in-flight payment
        with self.assertRaises(Conflict):
            self.pay("k2")

    def test_async_outcome_waits_for_callback(self) -> None:
        ScriptedGateway.enqueue(ScriptedGateway.pending("kaspi_async_1"))

        payment = self.pay("k1")
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.provider_reference, "kaspi_async_1")

        settled = settle_payment_outcome(
            GatewayResult(outcome=Outcome.SUCCEEDED, provider_reference="kaspi_async_1"),
            gateway=self.gateway,
        )
        self.assertEqual(settled.pk, payment.pk)
        self.assertEqual(settled.status, Payment.Status.COMPLETED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)

    def test_handler_records_provider_interactions(self) -> None:
        payment = PayBookingHandler(gateway=self.gateway).handle(
            PayBookingCommand(booking_id=self.booking.pk, idempotency_key="k1", amount="480")
        )
        events = list(payment.transactions.values_list("event", flat=True))
        self.assertEqual(events, [PaymentTransaction.Event.CHARGE])
        self.assertEqual(payment.provider, "scripted")


class SettleOutcomeTests(SettlementTestCase):
    def setUp(self) -> None:
        super().setUp()
        ScriptedGateway.enqueue(ScriptedGateway.pending("kaspi_ref_1"))
        self.payment = self.pay("k1")
        self.handler = SettlePaymentOutcomeHandler(gateway=self.gateway)

    def settle(self, outcome, **kwargs) -> Payment:
        kwargs.setdefault("provider_reference", "kaspi_ref_1")
        return settle_payment_outcome(GatewayResult(outcome=outcome, **kwargs), gateway=self.gateway)

    def test_duplicate_success_callbacks_complete_once(self) -> None:
        first = self.settle(Outcome.SUCCEEDED)
        self.booking.refresh_from_db()
        version_after_first = self.booking.version

        second = self.settle(Outcome.SUCCEEDED)

        self.assertEqual(first.status, Payment.Status.COMPLETED)
        self.assertEqual(second.status, Payment.Status.COMPLETED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)
        self.assertEqual(self.booking.version, version_after_first)
        self.assertEqual(self.payment.transactions.filter(event=PaymentTransaction.Event.CALLBACK).count(), 2)

    def test_late_failure_after_success_is_ignored(self) -> None:
        self.settle(Outcome.SUCCEEDED)
        payment = self.settle(Outcome.FAILED, failure_reason="expired")

        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.failure_reason, "")

    def test_failure_callback(self) -> None:
        payment = self.settle(Outcome.FAILED, failure_reason="declined")

        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)

    def test_success_for_cancelled_booking_is_refunded(self) -> None:
        apply_transition(self.booking.pk, Action.CANCEL, self.owner.as_actor(), reason="Объект недоступен")

        with self.captureOnCommitCallbacks(execute=True):
            payment = self.settle(Outcome.SUCCEEDED)

        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.failure_reason, "booking_not_payable")
        self.assertEqual(ScriptedGateway.refunds, [(payment.pk, "booking_not_payable")])
        self.assertTrue(payment.transactions.filter(event=PaymentTransaction.Event.REFUND).exists())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELED)

    def test_locate_by_transaction_id(self) -> None:
        payment = settle_payment_outcome(
            GatewayResult(outcome=Outcome.SUCCEEDED),
            transaction_id=self.payment.transaction_id,
            gateway=self.gateway,
        )
        self.assertEqual(payment.pk, self.payment.pk)
        self.assertEqual(payment.status, Payment.Status.COMPLETED)

    def test_unknown_payment(self) -> None:
        with self.assertRaises(NotFound):
            self.settle(Outcome.SUCCEEDED, provider_reference="unknown")


class ConcurrentPaymentTests(TransactionTestCase):
    """Simultaneous requests with one idempotency key charge once."""

    WORKERS = 5

    def setUp(self) -> None:
        ScriptedGateway.reset()
        owner = User.objects.create_user(email="owner-pay-race@example.com", password="x")
        self.guest = User.objects.create_user(email="guest-pay-race@example.com", password="x")
        listing = Property.objects.create(
            owner=owner,
            title="Лофт",
            status=Property.Status.ACTIVE,
            base_price=Decimal("120.00"),
            max_guests=2,
        )
        self.booking = create_booking(listing.pk, self.guest.pk, date(2025, 9, 1), date(2025, 9, 5))
        apply_transition(self.booking.pk, Action.CONFIRM, owner.as_actor())

    def test_same_key_from_many_threads(self) -> None:
        barrier = threading.Barrier(self.WORKERS)
        payment_ids: list[int] = []
        failures: list[ReservationError] = []
        lock = threading.Lock()

        def attempt() -> None:
            try:
                barrier.wait()
                payment = pay(
                    self.booking.pk,
                    "k1",
                    "480.00",
                    actor=self.guest.as_actor(),
                    gateway=ScriptedGateway(),
                )
                with lock:
                    payment_ids.append(payment.pk)
            except ReservationError as exc:
                with lock:
                    failures.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=attempt) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(failures, [])
        self.assertEqual(len(payment_ids), self.WORKERS)
        self.assertEqual(len(set(payment_ids)), 1)
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(len(ScriptedGateway.charges), 1)

        payment = Payment.objects.get()
        self.assertEqual(payment.pk, payment_ids[0])
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)
