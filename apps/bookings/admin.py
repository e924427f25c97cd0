"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Read-mostly: status changes go through the booking commands."""

    list_display = (
        "booking_code",
        "property",
        "guest",
        "status",
        "check_in",
        "check_out",
        "total_price",
        "currency",
        "created_at",
    )
    list_filter = ("status", "cancellation_source", "check_in", "check_out")
    search_fields = ("booking_code", "property__title", "guest__email")
    readonly_fields = (
        "booking_code",
        "status",
        "version",
        "nightly_rate",
        "total_nights",
        "fee_rules",
        "fees_total",
        "total_price",
        "currency",
        "expires_at",
        "confirmed_at",
        "completed_at",
        "cancelled_at",
        "cancellation_source",
        "cancellation_reason",
        "created_at",
        "updated_at",
    )
