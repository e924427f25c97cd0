"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment, PaymentTransaction


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    can_delete = False
    fields = ("event", "status", "payload", "created_at")
    readonly_fields = fields


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_id",
        "booking",
        "status",
        "method",
        "amount",
        "currency",
        "provider",
        "created_at",
    )
    list_filter = ("status", "method", "provider")
    search_fields = ("transaction_id", "provider_reference", "idempotency_key", "booking__booking_code")
    inlines = (PaymentTransactionInline,)
    readonly_fields = (
        "booking",
        "idempotency_key",
        "status",
        "amount",
        "currency",
        "transaction_id",
        "provider_reference",
        "provider",
        "failure_reason",
        "metadata",
        "processed_at",
        "created_at",
        "updated_at",
    )
