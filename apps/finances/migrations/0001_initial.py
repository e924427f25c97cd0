from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("idempotency_key", models.CharField(max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Создан, ожидает оплаты"),
                            ("completed", "Оплачен"),
                            ("failed", "Ошибка"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("kaspi", "Kaspi Pay"),
                            ("card", "Банковская карта"),
                            ("cash", "Наличные"),
                            ("transfer", "Банковский перевод"),
                        ],
                        max_length=20,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="KZT", max_length=3)),
                (
                    "transaction_id",
                    models.CharField(
                        help_text="Идентификатор операции на стороне мерчанта.",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "provider_reference",
                    models.CharField(
                        blank=True,
                        help_text="Идентификатор платежа у платёжного провайдера.",
                        max_length=100,
                    ),
                ),
                ("provider", models.CharField(blank=True, help_text="Название платёжного провайдера", max_length=50)),
                ("failure_reason", models.CharField(blank=True, max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Платёж",
                "verbose_name_plural": "Платежи",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("booking", "idempotency_key"),
                        name="payment_unique_idempotency_key",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "completed")),
                        fields=("booking",),
                        name="payment_single_completed_per_booking",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "pending")),
                        fields=("booking",),
                        name="payment_single_pending_per_booking",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("provider_reference", ""), _negated=True),
                        fields=("provider_reference",),
                        name="payment_unique_provider_reference",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_positive_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event",
                    models.CharField(
                        choices=[
                            ("charge", "Ответ на списание"),
                            ("callback", "Callback провайдера"),
                            ("reconcile", "Сверка статуса"),
                            ("refund", "Возврат"),
                        ],
                        max_length=50,
                    ),
                ),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("status", models.CharField(blank=True, max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to="finances.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Платёжная транзакция",
                "verbose_name_plural": "Платёжные транзакции",
                "ordering": ["-created_at"],
            },
        ),
    ]
