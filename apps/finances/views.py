"""API views for payment processing.

Guests (or the property owner / platform admins) pay for confirmed
bookings through ``PaymentViewSet.create``. Repeating a request with the
same idempotency key returns the original payment instead of charging
again. Kaspi reports asynchronous outcomes to ``KaspiWebhookView``; both
paths end in the same settlement handler.
"""

from __future__ import annotations

import json
import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore
from django.db.models import Q  # type: ignore

from shared.application.message_bus import message_bus
from shared.domain.exceptions import Forbidden, InvalidInput

from .application.command_handlers import PayBookingCommand, settle_payment_outcome
from .gateways import get_payment_gateway
from .models import Payment
from .serializers import KaspiWebhookSerializer, PayBookingSerializer, PaymentSerializer

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    """Viewset for paying bookings and reading payment objects."""

    queryset = Payment.objects.select_related("booking", "booking__property").prefetch_related("transactions")
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "booking"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if user.is_platform_admin():
            return qs
        return qs.filter(Q(booking__guest=user) | Q(booking__property__owner=user))

    @extend_schema(
        request=PayBookingSerializer,
        responses={201: PaymentSerializer, 200: PaymentSerializer},
        parameters=[OpenApiParameter(IDEMPOTENCY_HEADER, str, OpenApiParameter.HEADER, required=False)],
    )
    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = PayBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        key = request.headers.get(IDEMPOTENCY_HEADER) or data.get("idempotency_key") or ""
        if not key:
            raise InvalidInput(f"{IDEMPOTENCY_HEADER} header or idempotency_key field is required")

        before = Payment.objects.filter(booking_id=data["booking"], idempotency_key=key).exists()
        payment = message_bus.handle_command(PayBookingCommand(
            booking_id=data["booking"],
            idempotency_key=key,
            amount=data["amount"],
            currency=data["currency"],
            method=data["method"],
            payment_token=data["payment_token"],
            actor=request.user.as_actor(),
        ))

        return Response(
            PaymentSerializer(payment).data,
            status=status.HTTP_200_OK if before else status.HTTP_201_CREATED,
        )


class KaspiWebhookView(APIView):
    """
    Обработка webhook от Kaspi о статусе платежа

    The raw body is signed with HMAC-SHA256 (``X-Kaspi-Signature``).
    Unknown statuses are acknowledged and ignored so Kaspi stops retrying.
    """

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    @extend_schema(request=KaspiWebhookSerializer, responses={200: None})
    def post(self, request, *args, **kwargs):  # type: ignore
        body = request.body
        gateway = get_payment_gateway()

        if not gateway.verify_signature(body, request.headers.get("X-Kaspi-Signature", "")):
            logger.error("Неверная подпись webhook от Kaspi")
            raise Forbidden("Invalid webhook signature")

        try:
            data = json.loads(body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("Kaspi webhook: Неверный JSON")
            raise InvalidInput("Invalid JSON")

        logger.info(f"Kaspi webhook получен: {data}")
        serializer = KaspiWebhookSerializer(data=data)
        serializer.is_valid(raise_exception=True)

        result = gateway.parse_callback(data)
        if result is None:
            return Response({"status": "ignored"}, status=status.HTTP_200_OK)

        payment = settle_payment_outcome(
            result,
            transaction_id=serializer.validated_data.get("transaction_id") or None,
            gateway=gateway,
        )
        return Response(
            {"status": "ok", "payment_id": payment.pk, "payment_status": payment.status},
            status=status.HTTP_200_OK,
        )
