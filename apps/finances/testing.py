"""Scripted payment gateway for tests and local scenarios.

``ScriptedGateway.script`` is a class-level queue shared by every
instance, so views and tasks that build their own gateway through
``get_payment_gateway()`` see the same script. Each queued item is a
:class:`GatewayResult` or an exception instance to raise. An empty queue
answers with success.
"""

from __future__ import annotations

import hashlib
import hmac
import uuid

from .gateways import GatewayResult, KaspiGateway, Outcome, gateway_setting


class ScriptedGateway(KaspiGateway):
    """Kaspi callback parsing and signature checks with scripted charges."""

    name = "scripted"

    script: list = []
    status_script: list = []
    charges: list = []
    refunds: list = []

    @classmethod
    def reset(cls) -> None:
        cls.script = []
        cls.status_script = []
        cls.charges = []
        cls.refunds = []

    @classmethod
    def enqueue(cls, *items) -> None:
        cls.script.extend(items)

    @classmethod
    def enqueue_status(cls, *items) -> None:
        cls.status_script.extend(items)

    @staticmethod
    def succeeded(reference: str | None = None) -> GatewayResult:
        return GatewayResult(outcome=Outcome.SUCCEEDED, provider_reference=reference or f"ref_{uuid.uuid4().hex[:12]}")

    @staticmethod
    def failed(reason: str = "declined", reference: str = "") -> GatewayResult:
        return GatewayResult(outcome=Outcome.FAILED, provider_reference=reference, failure_reason=reason)

    @staticmethod
    def pending(reference: str | None = None) -> GatewayResult:
        return GatewayResult(outcome=Outcome.PENDING, provider_reference=reference or f"ref_{uuid.uuid4().hex[:12]}")

    @staticmethod
    def _next(queue: list, default: GatewayResult) -> GatewayResult:
        item = queue.pop(0) if queue else default
        if isinstance(item, BaseException):
            raise item
        return item

    def charge(self, payment, token: str) -> GatewayResult:
        type(self).charges.append((payment.pk, payment.amount, token))
        return self._next(type(self).script, self.succeeded())

    def check_status(self, payment) -> GatewayResult:
        return self._next(type(self).status_script, self.succeeded(payment.provider_reference or None))

    def refund(self, payment, reason: str = "") -> bool:
        type(self).refunds.append((payment.pk, reason))
        return True


def sign_body(body: bytes) -> str:
    """Webhook signature the way Kaspi computes it."""
    secret = gateway_setting("SECRET_KEY", "")
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
