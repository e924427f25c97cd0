"""API views for the booking domain."""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from drf_spectacular.utils import extend_schema  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.application.message_bus import message_bus

from .application.command_handlers import CreateBookingCommand, TransitionBookingCommand
from .domain.state_machine import Action
from .models import Booking
from .serializers import BookingCreateSerializer, BookingSerializer, BookingTransitionSerializer


class BookingViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Viewset для создания и управления бронированиями.

    Гость видит свои брони, владелец объекта - брони своих объектов,
    администраторы платформы - все. Who may confirm or cancel is decided
    by the booking state machine, not by the queryset.
    """

    queryset = Booking.objects.select_related("property", "guest", "property__owner").all()
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "property"]

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return BookingCreateSerializer
        if self.action in ("confirm", "cancel"):
            return BookingTransitionSerializer
        return BookingSerializer

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if user.is_platform_admin():
            return qs
        return qs.filter(Q(guest=user) | Q(property__owner=user))

    @extend_schema(request=BookingCreateSerializer, responses={201: BookingSerializer})
    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = message_bus.handle_command(CreateBookingCommand(
            property_id=data["property"],
            guest_id=request.user.pk,
            check_in=data["check_in"],
            check_out=data["check_out"],
            guests_count=data["guests_count"],
            special_requests=data["special_requests"],
        ))
        read_serializer = BookingSerializer(booking, context=self.get_serializer_context())
        headers = self.get_success_headers(read_serializer.data)
        return Response(read_serializer.data, status=status.HTTP_201_CREATED, headers=headers)

    @extend_schema(request=BookingTransitionSerializer, responses={200: BookingSerializer})
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):  # type: ignore
        return self._transition(request, Action.CONFIRM)

    @extend_schema(request=BookingTransitionSerializer, responses={200: BookingSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        return self._transition(request, Action.CANCEL)

    def _transition(self, request, action_name: str) -> Response:
        booking: Booking = self.get_object()  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = message_bus.handle_command(TransitionBookingCommand(
            booking_id=booking.pk,
            action=action_name,
            actor=request.user.as_actor(),
            reason=serializer.validated_data["reason"],
        ))
        return Response(BookingSerializer(booking, context=self.get_serializer_context()).data)
