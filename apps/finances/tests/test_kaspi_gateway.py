"""Tests for the Kaspi gateway adapter."""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from apps.finances.gateways import (
    GatewayTimeout,
    KaspiGateway,
    Outcome,
    PaymentGatewayError,
    get_payment_gateway,
)
from apps.finances.testing import ScriptedGateway

LIVE_GATEWAY = {
    "BACKEND": "apps.finances.gateways.KaspiGateway",
    "API_KEY": "api-key",
    "MERCHANT_ID": "merchant-1",
    "SECRET_KEY": "secret",
    "BASE_URL": "https://kaspi.test/v2/",
    "TIMEOUT_SECONDS": 5,
}


def make_payment(**overrides):
    data = dict(
        pk=1,
        booking_id=10,
        amount=Decimal("480.00"),
        currency="KZT",
        transaction_id="PAY-0001",
        provider_reference="",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def json_response(data: dict) -> mock.Mock:
    response = mock.Mock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


@override_settings(PAYMENT_GATEWAY=LIVE_GATEWAY, DEBUG=False)
class KaspiGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        self.gateway = KaspiGateway()

    def test_backend_from_settings(self) -> None:
        self.assertIsInstance(get_payment_gateway(), KaspiGateway)
        self.assertFalse(self.gateway.emulated)

    @mock.patch("apps.finances.gateways.requests.request")
    def test_charge_success(self, request) -> None:
        request.return_value = json_response({"success": True, "payment_id": "kp_1", "status": "SUCCESS"})

        result = self.gateway.charge(make_payment(), "tok")

        self.assertEqual(result.outcome, Outcome.SUCCEEDED)
        self.assertEqual(result.provider_reference, "kp_1")
        method, url = request.call_args.args
        payload = request.call_args.kwargs["json"]
        self.assertEqual((method, url), ("POST", "https://kaspi.test/v2/payments/create"))
        self.assertEqual(payload["amount"], 48000)
        self.assertEqual(payload["transaction_id"], "PAY-0001")
        self.assertIn("signature", payload)
        self.assertEqual(request.call_args.kwargs["timeout"], 5)

    @mock.patch("apps.finances.gateways.requests.request")
    def test_charge_declined(self, request) -> None:
        request.return_value = json_response({"success": False, "error": {"message": "insufficient_funds"}})

        result = self.gateway.charge(make_payment(), "tok")

        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertEqual(result.failure_reason, "insufficient_funds")

    @mock.patch("apps.finances.gateways.requests.request")
    def test_charge_processing_is_pending(self, request) -> None:
        request.return_value = json_response({"success": True, "payment_id": "kp_2", "status": "PROCESSING"})

        self.assertEqual(self.gateway.charge(make_payment(), "tok").outcome, Outcome.PENDING)

    @mock.patch("apps.finances.gateways.requests.request")
    def test_timeout_and_network_errors(self, request) -> None:
        request.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(GatewayTimeout):
            self.gateway.charge(make_payment(), "tok")

        request.side_effect = requests.exceptions.ConnectionError("down")
        with self.assertRaises(PaymentGatewayError):
            self.gateway.check_status(make_payment())

    @mock.patch("apps.finances.gateways.requests.request")
    def test_refund_failure_returns_false(self, request) -> None:
        request.side_effect = requests.exceptions.ConnectionError("down")

        self.assertFalse(self.gateway.refund(make_payment(provider_reference="kp_1"), reason="booking_not_payable"))

    def test_verify_signature(self) -> None:
        body = b'{"payment_id": "kp_1", "status": "SUCCESS"}'
        signature = hmac.new(b"secret", body, hashlib.sha256).hexdigest()

        self.assertTrue(self.gateway.verify_signature(body, signature))
        self.assertFalse(self.gateway.verify_signature(body, "0" * 64))
        self.assertFalse(self.gateway.verify_signature(body, ""))

    def test_parse_callback(self) -> None:
        result = self.gateway.parse_callback({"transactionId": "kp_1", "status": "declined", "error_message": "nope"})

        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertEqual(result.provider_reference, "kp_1")
        self.assertEqual(result.failure_reason, "nope")
        self.assertIsNone(self.gateway.parse_callback({"payment_id": "kp_1", "status": "ON_HOLD"}))


@override_settings(PAYMENT_GATEWAY={"API_KEY": "", "SECRET_KEY": ""}, DEBUG=False)
class KaspiEmulationTests(SimpleTestCase):
    @mock.patch("apps.finances.gateways.requests.request")
    def test_emulated_without_api_key(self, request) -> None:
        gateway = KaspiGateway()

        result = gateway.charge(make_payment(), "")

        self.assertTrue(gateway.emulated)
        self.assertEqual(result.outcome, Outcome.SUCCEEDED)
        self.assertTrue(result.provider_reference.startswith("kaspi_"))
        self.assertTrue(gateway.refund(make_payment(), ""))
        request.assert_not_called()

    def test_unsigned_webhooks_rejected_outside_debug(self) -> None:
        self.assertFalse(KaspiGateway().verify_signature(b"{}", ""))


class ScriptedGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        ScriptedGateway.reset()

    def test_script_order_and_default(self) -> None:
        gateway = ScriptedGateway()
        ScriptedGateway.enqueue(ScriptedGateway.failed("declined"), GatewayTimeout("slow"))

        self.assertEqual(gateway.charge(make_payment(), "").outcome, Outcome.FAILED)
        with self.assertRaises(GatewayTimeout):
            gateway.charge(make_payment(), "")
        self.assertEqual(gateway.charge(make_payment(), "").outcome, Outcome.SUCCEEDED)
        self.assertEqual(len(ScriptedGateway.charges), 3)
