"""Booking domain models."""

from __future__ import annotations

import builtins
import secrets
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from .domain.pricing import FeeRule, Quote, price
from .domain.state_machine import BookingStatus, TransitionContext
from shared.domain.value_objects import DateRange


class BookingQuerySet(models.QuerySet):
    def blocking(self):
        """Bookings that occupy the calendar (pending, confirmed, completed)."""
        return self.filter(status__in=BookingStatus.BLOCKING)

    def overlapping(self, check_in, check_out):
        """Half-open overlap: existing.start < end AND start < existing.end."""
        return self.filter(check_in__lt=check_out, check_out__gt=check_in)


class Booking(models.Model):
    """Бронирование объекта недвижимости."""

    class Status(models.TextChoices):
        PENDING = BookingStatus.PENDING, _("Ожидает подтверждения")
        CONFIRMED = BookingStatus.CONFIRMED, _("Подтверждено")
        COMPLETED = BookingStatus.COMPLETED, _("Завершено")
        CANCELED = BookingStatus.CANCELED, _("Отменено")

    class CancellationSource(models.TextChoices):
        GUEST = "guest", _("Гость")
        OWNER = "owner", _("Владелец")
        ADMIN = "admin", _("Администратор")
        SYSTEM = "system", _("Система")

    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    booking_code = models.CharField(max_length=12, unique=True, editable=False)
    check_in = models.DateField()
    check_out = models.DateField()
    guests_count = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    nightly_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Фиксированная цена за ночь на момент брони."),
    )
    total_nights = models.PositiveSmallIntegerField(default=1)
    fee_rules = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Снимок правил сборов, по которым рассчитана цена."),
    )
    fees_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="KZT")
    special_requests = models.TextField(blank=True)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Таймаут удержания бронирования, после которого система отменяет бронь."),
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_source = models.CharField(
        max_length=20,
        choices=CancellationSource.choices,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    version = models.PositiveIntegerField(
        default=1,
        help_text=_("Счётчик версий для оптимистической блокировки."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        verbose_name = _("Бронирование")
        verbose_name_plural = _("Бронирования")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "check_in", "check_out"], name="booking_property_dates_idx"),
            models.Index(fields=["status"], name="booking_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.booking_code} for {self.property_id}"

    @staticmethod
    def generate_booking_code() -> str:
        return secrets.token_hex(4).upper()

    @builtins.property
    def dates(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)

    @builtins.property
    def is_terminal(self) -> bool:
        return self.status in BookingStatus.TERMINAL

    def applied_fee_rules(self) -> list[FeeRule]:
        return [FeeRule.from_snapshot(item) for item in self.fee_rules or []]

    def quote(self) -> Quote:
        """Re-price the booking from the inputs it was created with."""
        return price(
            self.check_in,
            self.check_out,
            self.nightly_rate,
            self.applied_fee_rules(),
            currency=self.currency,
        )

    def transition_context(self) -> TransitionContext:
        return TransitionContext(
            status=self.status,
            guest_id=self.guest_id,
            owner_id=self.property.owner_id,
            check_in=self.check_in,
            check_out=self.check_out,
            cancellation_cutoff_days=self.property.cancellation_cutoff_days,
            has_completed_payment=self.payments.filter(status="completed").exists(),
        )
