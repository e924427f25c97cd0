"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Admit a new booking if the dates are free
- TransitionBookingCommand: Confirm, cancel or complete a booking
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
import logging

from django.db.models import F
from django.utils import timezone

from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import Conflict, InvalidInput, NotFound
from shared.domain.value_objects import Actor, DateRange
from apps.bookings.conf import reservation_setting
from apps.bookings.domain.events import BookingCreated, EVENTS_BY_STATUS
from apps.bookings.domain.pricing import FeeRule, price
from apps.bookings.domain.state_machine import BookingStatus, resolve_transition
from apps.bookings.models import Booking
from apps.bookings.services import ensure_property_is_available, lock_property

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    This is the only entry point that inserts bookings.
    """
    property_id: int
    guest_id: int
    check_in: date
    check_out: date
    guests_count: int = 1
    special_requests: str = ''
    now: Optional[datetime] = None


@dataclass
class TransitionBookingCommand:
    """Command to move a booking to another status"""
    booking_id: int
    action: str
    actor: Actor
    now: Optional[datetime] = None
    reason: str = ''


# ===== Command Handlers =====

class CreateBookingHandler:
    """
    Handler for CreateBooking command

    Double booking prevention:
    1. Validate the request (dates, stay length, capacity)
    2. Start database transaction (atomic)
    3. Lock the property row (SELECT FOR UPDATE, bounded wait)
    4. Query blocking bookings intersecting [check_in, check_out)
    5. Price the stay and insert the PENDING booking
    6. Commit; publish BookingCreated after commit
    7. PostgreSQL EXCLUDE constraint as final safety net
    """

    def handle(self, command: CreateBookingCommand) -> Booking:
        logger.info(
            f"Creating booking for property {command.property_id}, "
            f"guest {command.guest_id}, dates {command.check_in} - {command.check_out}"
        )

        if not isinstance(command.check_in, date) or not isinstance(command.check_out, date):
            raise InvalidInput("Check-in and check-out must be dates")
        # Raises InvalidInput when check_in >= check_out
        dates = DateRange(command.check_in, command.check_out)
        now = command.now or timezone.now()

        with DjangoUnitOfWork() as uow:
            property_obj = lock_property(command.property_id)
            if not property_obj.is_bookable:
                raise NotFound(
                    f"Property {command.property_id} not found or not active",
                    property_id=command.property_id,
                )

            nights = len(dates)
            if nights < property_obj.min_nights or nights > property_obj.max_nights:
                raise InvalidInput(
                    f"Stay of {nights} night(s) is outside the allowed range "
                    f"{property_obj.min_nights}-{property_obj.max_nights}",
                    nights=nights,
                )

            if command.guests_count < 1:
                raise InvalidInput(
                    f"Guests count must be at least 1, got {command.guests_count}",
                    guests_count=command.guests_count,
                )
            if command.guests_count > property_obj.max_guests:
                raise InvalidInput(
                    f"Guests count ({command.guests_count}) exceeds property capacity "
                    f"({property_obj.max_guests})",
                    guests_count=command.guests_count,
                )

            ensure_property_is_available(property_obj.pk, dates.start_date, dates.end_date)

            fee_rules = property_obj.fee_rules() + platform_fee_rules()
            quote = price(
                dates.start_date,
                dates.end_date,
                property_obj.base_price,
                fee_rules,
                currency=property_obj.currency,
            )

            booking = Booking.objects.create(
                booking_code=Booking.generate_booking_code(),
                property=property_obj,
                guest_id=command.guest_id,
                check_in=dates.start_date,
                check_out=dates.end_date,
                guests_count=command.guests_count,
                status=Booking.Status.PENDING,
                nightly_rate=quote.nightly_rate,
                total_nights=quote.nights,
                fee_rules=[rule.to_snapshot() for rule in fee_rules],
                fees_total=quote.fees_total,
                total_price=quote.total,
                currency=quote.currency,
                special_requests=command.special_requests,
                expires_at=now + timedelta(minutes=int(reservation_setting("HOLD_MINUTES"))),
            )

            uow.add_event(BookingCreated(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                property_id=property_obj.pk,
                guest_id=command.guest_id,
                dates=dates,
                total_price=quote.total,
                currency=quote.currency,
            ))

        logger.info(
            f"Booking created successfully: {booking.booking_code} "
            f"(ID: {booking.pk}, total {quote.total} {quote.currency})"
        )

        return booking


class TransitionBookingHandler:
    """
    Handler for status changes

    Optimistic concurrency: the booking is read without a lock, the guard
    is evaluated on that snapshot and the write only lands if the version
    is still the one that was read. A concurrent writer makes this one fail
    with Conflict instead of silently overwriting it.
    """

    def handle(self, command: TransitionBookingCommand) -> Booking:
        logger.info(
            f"Applying '{command.action}' to booking {command.booking_id} by {command.actor}"
        )
        now = command.now or timezone.now()

        booking = (
            Booking.objects.select_related("property")
            .filter(pk=command.booking_id)
            .first()
        )
        if booking is None:
            raise NotFound(f"Booking {command.booking_id} not found", booking_id=command.booking_id)

        old_status = booking.status
        read_version = booking.version
        target = resolve_transition(
            booking.transition_context(),
            command.action,
            command.actor,
            timezone.localtime(now) if timezone.is_aware(now) else now,
        )

        updates = {
            "status": target,
            "version": F("version") + 1,
            "updated_at": now,
        }
        if target == BookingStatus.CONFIRMED:
            updates.update(confirmed_at=now, expires_at=None)
        elif target == BookingStatus.CANCELED:
            updates.update(
                cancelled_at=now,
                cancellation_source=self._cancellation_source(booking, command.actor),
                cancellation_reason=command.reason[:255],
            )
        elif target == BookingStatus.COMPLETED:
            updates.update(completed_at=now)

        with DjangoUnitOfWork() as uow:
            updated = Booking.objects.filter(
                pk=booking.pk,
                version=read_version,
                status=old_status,
            ).update(**updates)

            if not updated:
                logger.warning(
                    f"Version clash on booking {booking.booking_code}: "
                    f"read v{read_version} ({old_status}), '{command.action}' rejected"
                )
                raise Conflict(
                    "Booking was modified concurrently, retry the request.",
                    booking_id=booking.pk,
                )

            event_class = EVENTS_BY_STATUS[target]
            event_kwargs = dict(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                property_id=booking.property_id,
                old_status=old_status,
                new_status=target,
                actor=str(command.actor),
                version=read_version + 1,
            )
            if target == BookingStatus.CANCELED:
                event_kwargs["reason"] = command.reason
            uow.add_event(event_class(**event_kwargs))

        booking.refresh_from_db()
        logger.info(f"Booking {booking.booking_code}: {old_status} -> {booking.status} (v{booking.version})")
        return booking

    @staticmethod
    def _cancellation_source(booking: Booking, actor: Actor) -> str:
        if actor.is_system:
            return Booking.CancellationSource.SYSTEM
        if actor.id == booking.property.owner_id:
            return Booking.CancellationSource.OWNER
        if actor.id == booking.guest_id:
            return Booking.CancellationSource.GUEST
        return Booking.CancellationSource.ADMIN


def platform_fee_rules() -> list:
    return [FeeRule.from_snapshot(item) for item in reservation_setting("PLATFORM_FEES")]


# ===== Entry points =====

def create_booking(property_id, requester_id, start, end, guest_count=1, **extra) -> Booking:
    """Admit a booking for [start, end) or raise a ReservationError."""
    return CreateBookingHandler().handle(CreateBookingCommand(
        property_id=property_id,
        guest_id=requester_id,
        check_in=start,
        check_out=end,
        guests_count=guest_count,
        **extra,
    ))


def apply_transition(booking_id, action, actor: Actor, now=None, reason: str = '') -> Booking:
    """Apply confirm, cancel or complete on behalf of actor."""
    return TransitionBookingHandler().handle(TransitionBookingCommand(
        booking_id=booking_id,
        action=action,
        actor=actor,
        now=now,
        reason=reason,
    ))
