"""
Payment gateway adapters.

The settlement coordinator talks to the outside world only through
:class:`PaymentGateway`. The active implementation is configured with
``settings.PAYMENT_GATEWAY["BACKEND"]``.

Kaspi.kz integration: signed JSON requests over ``requests``. Without an
API key (or in DEBUG) the adapter emulates Kaspi responses so payment
scenarios can be reproduced locally.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Transport or protocol failure talking to the provider; outcome unknown."""


class GatewayTimeout(PaymentGatewayError):
    """Provider did not answer within the configured timeout."""


class Outcome:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"

    TERMINAL = (SUCCEEDED, FAILED)


@dataclass
class GatewayResult:
    """What the provider told us about one payment."""

    outcome: str
    provider_reference: str = ""
    failure_reason: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.outcome in Outcome.TERMINAL


def gateway_setting(name: str, default: Any = None) -> Any:
    return (getattr(settings, "PAYMENT_GATEWAY", {}) or {}).get(name, default)


class PaymentGateway:
    """Contract every provider adapter implements."""

    name = "base"

    def charge(self, payment, token: str) -> GatewayResult:
        raise NotImplementedError

    def check_status(self, payment) -> GatewayResult:
        raise NotImplementedError

    def refund(self, payment, reason: str = "") -> bool:
        raise NotImplementedError

    def verify_signature(self, body: bytes, signature: str) -> bool:
        raise NotImplementedError

    def parse_callback(self, data: dict[str, Any]) -> GatewayResult | None:
        raise NotImplementedError


class KaspiGateway(PaymentGateway):
    """Kaspi.kz Payment Gateway Integration"""

    name = "kaspi"

    # Kaspi status -> settlement outcome
    STATUS_MAPPING = {
        "SUCCESS": Outcome.SUCCEEDED,
        "SUCCESSFUL": Outcome.SUCCEEDED,
        "COMPLETED": Outcome.SUCCEEDED,
        "PAID": Outcome.SUCCEEDED,
        "APPROVED": Outcome.SUCCEEDED,
        "FAILED": Outcome.FAILED,
        "DECLINED": Outcome.FAILED,
        "CANCELLED": Outcome.FAILED,
        "CANCELED": Outcome.FAILED,
        "EXPIRED": Outcome.FAILED,
        "PENDING": Outcome.PENDING,
        "PROCESSING": Outcome.PENDING,
    }

    def __init__(self) -> None:
        self.api_key = gateway_setting("API_KEY", "")
        self.merchant_id = gateway_setting("MERCHANT_ID", "")
        self.secret_key = gateway_setting("SECRET_KEY", "")
        self.base_url = gateway_setting("BASE_URL", "https://api.kaspi.kz/v2/")
        self.timeout = gateway_setting("TIMEOUT_SECONDS", 30)

    @property
    def emulated(self) -> bool:
        return settings.DEBUG or not self.api_key

    def _sign(self, data: dict[str, Any]) -> str:
        """
        Генерация подписи для запроса к Kaspi API
        """
        sign_string = "&".join(f"{k}={v}" for k, v in sorted(data.items()))
        sign_string += f"&{self.secret_key}"
        return hashlib.sha256(sign_string.encode()).hexdigest()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout as e:
            logger.error(f"Kaspi API timeout on {path}: {e}")
            raise GatewayTimeout(f"Kaspi не ответил вовремя: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Ошибка сети при запросе к Kaspi API ({path}): {e}")
            raise PaymentGatewayError(f"Ошибка соединения с Kaspi: {e}") from e
        except ValueError as e:
            logger.error(f"Kaspi API вернул не-JSON ответ ({path}): {e}")
            raise PaymentGatewayError(f"Некорректный ответ Kaspi: {e}") from e

    def _map_status(self, status: str | None) -> str | None:
        return self.STATUS_MAPPING.get((status or "").upper())

    def charge(self, payment, token: str) -> GatewayResult:
        logger.info(
            f"Инициация платежа Kaspi для бронирования {payment.booking_id}, "
            f"сумма {payment.amount} {payment.currency}"
        )

        if self.emulated:
            logger.warning("Используется эмуляция Kaspi API (DEBUG режим или отсутствует API ключ)")
            reference = f"kaspi_{uuid.uuid4().hex[:16]}"
            return GatewayResult(
                outcome=Outcome.SUCCEEDED,
                provider_reference=reference,
                payload={"payment_id": reference, "status": "SUCCESS", "emulated": True},
            )

        payload = {
            "merchant_id": self.merchant_id,
            "order_id": str(payment.booking_id),
            "transaction_id": payment.transaction_id,
            # Kaspi принимает суммы в тиынах
            "amount": int((Decimal(payment.amount) * 100).to_integral_value()),
            "currency": payment.currency,
            "payment_token": token,
        }
        payload["signature"] = self._sign(payload)

        result = self._request("POST", "payments/create", json=payload)
        reference = result.get("payment_id") or ""

        if not result.get("success"):
            error_msg = (result.get("error") or {}).get("message", "Unknown error")
            logger.warning(f"Kaspi отклонил платеж {payment.transaction_id}: {error_msg}")
            return GatewayResult(
                outcome=Outcome.FAILED,
                provider_reference=reference,
                failure_reason=error_msg[:255],
                payload=result,
            )

        outcome = self._map_status(result.get("status")) or Outcome.PENDING
        logger.info(f"Платеж Kaspi создан: {reference} ({outcome})")
        return GatewayResult(outcome=outcome, provider_reference=reference, payload=result)

    def check_status(self, payment) -> GatewayResult:
        logger.info(f"Проверка статуса платежа Kaspi: {payment.transaction_id}")

        if self.emulated:
            return GatewayResult(
                outcome=Outcome.SUCCEEDED,
                provider_reference=payment.provider_reference or f"kaspi_{uuid.uuid4().hex[:16]}",
                payload={"status": "SUCCESS", "emulated": True},
            )

        params = {"merchant_id": self.merchant_id, "transaction_id": payment.transaction_id}
        params["signature"] = self._sign(params)
        result = self._request("GET", f"payments/{payment.transaction_id}/status", params=params)

        outcome = self._map_status(result.get("status")) or Outcome.PENDING
        return GatewayResult(
            outcome=outcome,
            provider_reference=result.get("payment_id") or payment.provider_reference,
            failure_reason=(result.get("error_message") or "")[:255],
            payload=result,
        )

    def refund(self, payment, reason: str = "") -> bool:
        logger.info(f"Отмена платежа Kaspi: {payment.provider_reference}, причина: {reason}")

        if self.emulated:
            logger.info("Эмуляция отмены платежа")
            return True

        payload = {
            "merchant_id": self.merchant_id,
            "payment_id": payment.provider_reference,
            "reason": reason or "Отменено системой",
        }
        payload["signature"] = self._sign(payload)
        try:
            result = self._request("POST", f"payments/{payment.provider_reference}/cancel", json=payload)
        except PaymentGatewayError as e:
            logger.error(f"Ошибка при отмене платежа {payment.provider_reference}: {e}")
            return False
        return bool(result.get("success", False))

    def verify_signature(self, body: bytes, signature: str) -> bool:
        """HMAC-SHA256 of the raw webhook body with the merchant secret."""
        if not self.secret_key:
            return bool(settings.DEBUG)
        expected = hmac.new(self.secret_key.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature or "")

    def parse_callback(self, data: dict[str, Any]) -> GatewayResult | None:
        outcome = self._map_status(data.get("status"))
        if outcome is None:
            logger.warning(f"Неизвестный статус платежа от Kaspi: {data.get('status')}")
            return None
        return GatewayResult(
            outcome=outcome,
            provider_reference=data.get("payment_id") or data.get("transactionId") or "",
            failure_reason=(data.get("error_message") or "")[:255],
            payload=data,
        )


def get_payment_gateway() -> PaymentGateway:
    backend = gateway_setting("BACKEND", "apps.finances.gateways.KaspiGateway")
    return import_string(backend)()
