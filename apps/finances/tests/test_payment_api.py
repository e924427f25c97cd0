"""Integration tests for payment API endpoints and the Kaspi webhook."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.application.command_handlers import apply_transition, create_booking
from apps.bookings.domain.state_machine import Action
from apps.bookings.models import Booking
from apps.finances.models import Payment
from apps.finances.testing import ScriptedGateway, sign_body
from apps.properties.models import Property
from apps.users.models import User


class PaymentAPITestBase(APITestCase):
    def setUp(self) -> None:
        ScriptedGateway.reset()
        self.guest = User.objects.create_user(
            email="guest@example.com",
            phone="+77000000012",
            password="GuestPass123",
        )
        self.owner = User.objects.create_user(
            email="realtor@example.com",
            phone="+77000000013",
            password="RealtorPass123",
            role=User.RoleChoices.REALTOR,
        )
        self.property = Property.objects.create(
            owner=self.owner,
            title="Студия в центре",
            status=Property.Status.ACTIVE,
            base_price=Decimal("120.00"),
            max_guests=2,
        )
        self.booking = create_booking(self.property.pk, self.guest.pk, date(2025, 9, 1), date(2025, 9, 5))
        apply_transition(self.booking.pk, Action.CONFIRM, self.owner.as_actor())
        self.list_url = reverse("payment-list")

    def _payload(self, amount: str = "480.00") -> dict:
        return {"booking": self.booking.pk, "amount": amount, "currency": "KZT", "method": "kaspi"}


class PaymentAPITests(PaymentAPITestBase):
    def setUp(self) -> None:
        super().setUp()
        self.client.force_authenticate(self.guest)

    def test_pay_and_replay_with_same_key(self) -> None:
        response = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], Payment.Status.COMPLETED)
        self.assertEqual(Decimal(response.data["amount"]), Decimal("480.00"))
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)

        replay = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")
        self.assertEqual(replay.status_code, status.HTTP_200_OK)
        self.assertEqual(replay.data["id"], response.data["id"])
        self.assertEqual(Payment.objects.count(), 1)

        second = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k2")
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.data["code"], "not_payable")

    def test_key_in_body(self) -> None:
        payload = {**self._payload(), "idempotency_key": "body-key"}

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["idempotency_key"], "body-key")

    def test_missing_key(self) -> None:
        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_input")

    def test_amount_mismatch(self) -> None:
        response = self.client.post(self.list_url, self._payload("100.00"), format="json", HTTP_IDEMPOTENCY_KEY="k1")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data["code"], "amount_mismatch")
        self.assertFalse(Payment.objects.exists())

    def test_declined_payment(self) -> None:
        ScriptedGateway.enqueue(ScriptedGateway.failed("insufficient_funds"))

        response = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], Payment.Status.FAILED)
        self.assertEqual(response.data["failure_reason"], "insufficient_funds")

    def test_list_is_scoped(self) -> None:
        self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")
        stranger = User.objects.create_user(email="stranger@example.com", phone="+77000000014", password="x")

        self.assertEqual(len(self.client.get(self.list_url).data), 1)

        self.client.force_authenticate(self.owner)
        self.assertEqual(len(self.client.get(self.list_url).data), 1)

        self.client.force_authenticate(stranger)
        self.assertEqual(len(self.client.get(self.list_url).data), 0)

    def test_stranger_cannot_pay(self) -> None:
        stranger = User.objects.create_user(email="stranger@example.com", phone="+77000000014", password="x")
        self.client.force_authenticate(stranger)

        response = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class KaspiWebhookTests(PaymentAPITestBase):
    def setUp(self) -> None:
        super().setUp()
        self.url = reverse("kaspi-webhook")
        ScriptedGateway.enqueue(ScriptedGateway.pending("kaspi_hook_1"))
        self.client.force_authenticate(self.guest)
        response = self.client.post(self.list_url, self._payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")
        self.assertEqual(response.data["status"], Payment.Status.PENDING)
        self.payment = Payment.objects.get()
        self.client.force_authenticate(None)

    def _post(self, data: dict, signature: str | None = None):
        body = json.dumps(data).encode()
        return self.client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_X_KASPI_SIGNATURE=signature if signature is not None else sign_body(body),
        )

    def test_success_callback_completes_booking(self) -> None:
        response = self._post({"payment_id": "kaspi_hook_1", "status": "SUCCESS"})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "ok")
        self.assertEqual(response.data["payment_status"], Payment.Status.COMPLETED)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)

        duplicate = self._post({"payment_id": "kaspi_hook_1", "status": "SUCCESS"})
        self.assertEqual(duplicate.status_code, status.HTTP_200_OK)
        self.assertEqual(duplicate.data["payment_status"], Payment.Status.COMPLETED)

    def test_callback_by_merchant_transaction_id(self) -> None:
        response = self._post({"transaction_id": self.payment.transaction_id, "status": "DECLINED"})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["payment_status"], Payment.Status.FAILED)

    def test_invalid_signature(self) -> None:
        response = self._post({"payment_id": "kaspi_hook_1", "status": "SUCCESS"}, signature="bad")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)

    def test_unknown_status_is_ignored(self) -> None:
        response = self._post({"payment_id": "kaspi_hook_1", "status": "ON_HOLD"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "ignored")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)

    def test_missing_identifiers(self) -> None:
        response = self._post({"status": "SUCCESS"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_payment(self) -> None:
        response = self._post({"payment_id": "nope", "status": "SUCCESS"})

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
