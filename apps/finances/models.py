"""Financial domain models."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Payment(models.Model):
    """Платёж, связанный с бронированием.

    A booking may accumulate several attempts (failed ones are kept), but the
    database guarantees at most one completed and at most one in-flight
    attempt per booking, and one row per (booking, idempotency key).
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Создан, ожидает оплаты")
        COMPLETED = "completed", _("Оплачен")
        FAILED = "failed", _("Ошибка")

    class Method(models.TextChoices):
        KASPI = "kaspi", _("Kaspi Pay")
        CARD = "card", _("Банковская карта")
        CASH = "cash", _("Наличные")
        TRANSFER = "transfer", _("Банковский перевод")

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    idempotency_key = models.CharField(max_length=128)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    method = models.CharField(max_length=20, choices=Method.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="KZT")
    transaction_id = models.CharField(
        max_length=100,
        unique=True,
        help_text=_("Идентификатор операции на стороне мерчанта."),
    )
    provider_reference = models.CharField(
        max_length=100,
        blank=True,
        help_text=_("Идентификатор платежа у платёжного провайдера."),
    )
    provider = models.CharField(max_length=50, blank=True, help_text=_("Название платёжного провайдера"))
    failure_reason = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Платёж")
        verbose_name_plural = _("Платежи")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "idempotency_key"],
                name="payment_unique_idempotency_key",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status="completed"),
                name="payment_single_completed_per_booking",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status="pending"),
                name="payment_single_pending_per_booking",
            ),
            models.UniqueConstraint(
                fields=["provider_reference"],
                condition=~models.Q(provider_reference=""),
                name="payment_unique_provider_reference",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_positive_amount",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.pk} for booking {self.booking_id} ({self.status})"

    @staticmethod
    def generate_transaction_id() -> str:
        return f"PAY-{uuid.uuid4().hex[:20].upper()}"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.FAILED)


class PaymentTransaction(models.Model):
    """История взаимодействий с платёжным провайдером (webhooks, callbacks)."""

    class Event(models.TextChoices):
        CHARGE = "charge", _("Ответ на списание")
        CALLBACK = "callback", _("Callback провайдера")
        RECONCILE = "reconcile", _("Сверка статуса")
        REFUND = "refund", _("Возврат")

    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    event = models.CharField(max_length=50, choices=Event.choices)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Платёжная транзакция")
        verbose_name_plural = _("Платёжные транзакции")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event} for payment {self.payment_id}"
