"""Admin registrations for properties domain."""

from __future__ import annotations

from django.contrib import admin

from .models import Property, PropertyFee


class PropertyFeeInline(admin.TabularInline):
    model = PropertyFee
    extra = 0
    fields = ("name", "kind", "basis", "amount")


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "status",
        "base_price",
        "currency",
        "max_guests",
        "min_nights",
        "max_nights",
        "cancellation_cutoff_days",
        "owner",
    )
    list_filter = ("status", "currency")
    search_fields = ("title", "owner__email")
    inlines = (PropertyFeeInline,)
    readonly_fields = ("created_at", "updated_at")
