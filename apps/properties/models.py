"""Property domain models.

Listing management is handled elsewhere; the reservation engine only
reads the attributes below: owner, nightly rate, currency, stay length
bounds, capacity, cancellation cutoff and fee rules.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.pricing import FeeRule


class Property(models.Model):
    """Объект недвижимости, выставленный на посуточную аренду."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Черновик")
        ACTIVE = "active", _("Активен")
        INACTIVE = "inactive", _("Неактивен")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="properties",
    )
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text=_("Цена за ночь."),
    )
    currency = models.CharField(max_length=3, default="KZT")
    max_guests = models.PositiveSmallIntegerField(default=1)
    min_nights = models.PositiveSmallIntegerField(default=1)
    max_nights = models.PositiveSmallIntegerField(default=30)
    cancellation_cutoff_days = models.PositiveSmallIntegerField(
        default=0,
        help_text=_("За сколько дней до заезда гость ещё может отменить подтверждённую бронь."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Объект недвижимости")
        verbose_name_plural = _("Объекты недвижимости")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_price__gte=0),
                name="property_non_negative_rate",
            ),
            models.CheckConstraint(
                condition=models.Q(max_nights__gte=models.F("min_nights")),
                name="property_min_max_nights_valid",
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "status"], name="property_owner_status_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_bookable(self) -> bool:
        return self.status == self.Status.ACTIVE

    def fee_rules(self) -> list[FeeRule]:
        """Fee rules applied when pricing a stay at this property."""
        return [fee.as_rule() for fee in self.fees.all()]


class PropertyFee(models.Model):
    """Дополнительный сбор (уборка, сервис), фиксированный или в процентах."""

    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="fees",
    )
    name = models.CharField(max_length=100)
    kind = models.CharField(max_length=10, choices=FeeRule.KIND_CHOICES, default=FeeRule.FLAT)
    basis = models.CharField(max_length=10, choices=FeeRule.BASIS_CHOICES, default=FeeRule.PER_STAY)
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text=_("Сумма сбора или процент от стоимости проживания."),
    )

    class Meta:
        verbose_name = _("Сбор")
        verbose_name_plural = _("Сборы")
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.kind}/{self.basis}: {self.amount})"

    def as_rule(self) -> FeeRule:
        return FeeRule(name=self.name, kind=self.kind, basis=self.basis, amount=self.amount)
