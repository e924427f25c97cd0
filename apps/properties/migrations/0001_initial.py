from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Property",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Черновик"), ("active", "Активен"), ("inactive", "Неактивен")],
                        default="draft",
                        max_length=20,
                    ),
                ),
                (
                    "base_price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Цена за ночь.",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                ("currency", models.CharField(default="KZT", max_length=3)),
                ("max_guests", models.PositiveSmallIntegerField(default=1)),
                ("min_nights", models.PositiveSmallIntegerField(default=1)),
                ("max_nights", models.PositiveSmallIntegerField(default=30)),
                (
                    "cancellation_cutoff_days",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="За сколько дней до заезда гость ещё может отменить подтверждённую бронь.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="properties",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Объект недвижимости",
                "verbose_name_plural": "Объекты недвижимости",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["owner", "status"], name="property_owner_status_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("base_price__gte", 0)),
                        name="property_non_negative_rate",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("max_nights__gte", models.F("min_nights"))),
                        name="property_min_max_nights_valid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PropertyFee",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                (
                    "kind",
                    models.CharField(
                        choices=[("flat", "Flat amount"), ("percent", "Percentage")],
                        default="flat",
                        max_length=10,
                    ),
                ),
                (
                    "basis",
                    models.CharField(
                        choices=[("per_stay", "Per stay"), ("per_night", "Per night")],
                        default="per_stay",
                        max_length=10,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Сумма сбора или процент от стоимости проживания.",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fees",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Сбор",
                "verbose_name_plural": "Сборы",
                "ordering": ["id"],
            },
        ),
    ]
