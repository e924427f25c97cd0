"""Serializers for the finance domain (payments)."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Payment, PaymentTransaction


class PaymentTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTransaction
        fields = ["id", "event", "payload", "status", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Отображение платёжных записей."""

    transactions = PaymentTransactionSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "idempotency_key",
            "method",
            "status",
            "amount",
            "currency",
            "transaction_id",
            "provider",
            "provider_reference",
            "failure_reason",
            "processed_at",
            "created_at",
            "updated_at",
            "transactions",
        ]
        read_only_fields = fields


class PayBookingSerializer(serializers.Serializer):
    """Входные данные для оплаты бронирования.

    The idempotency key may come from the ``Idempotency-Key`` header
    instead of the body; the view merges them.
    """

    booking = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(max_length=3, default="KZT")
    method = serializers.ChoiceField(choices=Payment.Method.choices, default=Payment.Method.KASPI)
    payment_token = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=128, required=False, allow_blank=True)


class KaspiWebhookSerializer(serializers.Serializer):
    """Тело callback-запроса Kaspi."""

    payment_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    transactionId = serializers.CharField(max_length=100, required=False, allow_blank=True)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    status = serializers.CharField(max_length=32)
    error_message = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):  # type: ignore
        if not (attrs.get("payment_id") or attrs.get("transactionId") or attrs.get("transaction_id")):
            raise serializers.ValidationError("payment_id or transaction_id is required")
        return attrs
