"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .domain.state_machine import allowed_actions
from .models import Booking


class BookingCreateSerializer(serializers.Serializer):
    """Создание брони гостем.

    Only the shape of the request is validated here; dates, capacity and
    availability are checked by the booking command under the property lock.
    """

    property = serializers.IntegerField(min_value=1)
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    guests_count = serializers.IntegerField(min_value=1, default=1)
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")


class BookingTransitionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class BookingSerializer(serializers.ModelSerializer):
    """Детальный сериализатор бронирования."""

    guest_id = serializers.ReadOnlyField(source="guest.id")
    property_id = serializers.ReadOnlyField(source="property.id")
    property_title = serializers.ReadOnlyField(source="property.title")
    fees = serializers.SerializerMethodField()
    allowed_actions = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "guest_id",
            "property_id",
            "property_title",
            "check_in",
            "check_out",
            "guests_count",
            "status",
            "nightly_rate",
            "total_nights",
            "fees",
            "fees_total",
            "total_price",
            "currency",
            "special_requests",
            "expires_at",
            "confirmed_at",
            "completed_at",
            "cancelled_at",
            "cancellation_source",
            "cancellation_reason",
            "allowed_actions",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_fees(self, obj: Booking) -> list:
        return obj.quote().fee_breakdown()

    def get_allowed_actions(self, obj: Booking) -> list:
        return list(allowed_actions(obj.status))
