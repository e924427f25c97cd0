from django.apps import AppConfig


class BookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.bookings"
    label = "bookings"

    def ready(self) -> None:
        from shared.application.message_bus import message_bus

        from .application.command_handlers import (
            CreateBookingCommand,
            CreateBookingHandler,
            TransitionBookingCommand,
            TransitionBookingHandler,
        )
        from .domain.events import BookingCancelled, BookingCompleted, BookingConfirmed, BookingCreated
        from .handlers import log_booking_event

        if not message_bus.has_command_handler(CreateBookingCommand):
            message_bus.register_command_handler(CreateBookingCommand, CreateBookingHandler().handle)
        if not message_bus.has_command_handler(TransitionBookingCommand):
            message_bus.register_command_handler(TransitionBookingCommand, TransitionBookingHandler().handle)

        for event_type in (BookingCreated, BookingConfirmed, BookingCancelled, BookingCompleted):
            message_bus.register_event_handler(event_type, log_booking_event)
