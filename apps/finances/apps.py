from django.apps import AppConfig


class FinancesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.finances"
    label = "finances"

    def ready(self) -> None:
        from shared.application.message_bus import message_bus

        from .application.command_handlers import (
            PayBookingCommand,
            PayBookingHandler,
            SettlePaymentOutcomeCommand,
            SettlePaymentOutcomeHandler,
        )
        from .domain.events import PaymentRefunded, PaymentSettled
        from .handlers import log_payment_refunded, log_payment_settled

        # The gateway is resolved per command so settings overrides apply
        if not message_bus.has_command_handler(PayBookingCommand):
            message_bus.register_command_handler(
                PayBookingCommand, lambda command: PayBookingHandler().handle(command)
            )
        if not message_bus.has_command_handler(SettlePaymentOutcomeCommand):
            message_bus.register_command_handler(
                SettlePaymentOutcomeCommand, lambda command: SettlePaymentOutcomeHandler().handle(command)
            )

        message_bus.register_event_handler(PaymentSettled, log_payment_settled)
        message_bus.register_event_handler(PaymentRefunded, log_payment_refunded)
