"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange


# ===== Booking Events =====

@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created in PENDING status

    Triggers:
    - Notify property owner
    - Hold expiry is enforced by the periodic sweep
    """
    booking_id: Optional[int] = None
    property_id: Optional[int] = None
    guest_id: Optional[int] = None
    dates: Optional[DateRange] = None
    total_price: Optional[Decimal] = None
    currency: str = ''

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'booking_id': self.booking_id,
            'property_id': self.property_id,
            'guest_id': self.guest_id,
            'dates': str(self.dates) if self.dates else None,
            'total_price': str(self.total_price) if self.total_price is not None else None,
            'currency': self.currency,
        })
        return data


@dataclass
class BookingStatusChanged(DomainEvent):
    """Base event for every persisted status transition"""
    booking_id: Optional[int] = None
    property_id: Optional[int] = None
    old_status: str = ''
    new_status: str = ''
    actor: str = ''
    version: int = 0

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'booking_id': self.booking_id,
            'property_id': self.property_id,
            'old_status': self.old_status,
            'new_status': self.new_status,
            'actor': self.actor,
            'version': self.version,
        })
        return data


@dataclass
class BookingConfirmed(BookingStatusChanged):
    """
    Event: Owner accepted the booking (PENDING -> CONFIRMED)

    Triggers:
    - Ask the guest to pay
    """


@dataclass
class BookingCancelled(BookingStatusChanged):
    """
    Event: Booking cancelled by guest, owner, admin or system

    The dates are free for new bookings as soon as this commits.
    """
    reason: str = ''


@dataclass
class BookingCompleted(BookingStatusChanged):
    """
    Event: Booking settled or stay finished (CONFIRMED -> COMPLETED)
    """


EVENTS_BY_STATUS = {
    'confirmed': BookingConfirmed,
    'canceled': BookingCancelled,
    'completed': BookingCompleted,
}
