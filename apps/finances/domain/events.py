"""
Payment Domain Events

Published after the settlement transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent


@dataclass
class PaymentSettled(DomainEvent):
    """
    Event: A pending payment reached a terminal status

    ``status`` is ``completed`` or ``failed``; ``failure_reason`` is
    ``booking_not_payable`` when the money arrived for a booking that had
    been cancelled meanwhile (a refund follows).
    """
    payment_id: Optional[int] = None
    booking_id: Optional[int] = None
    status: str = ''
    amount: Optional[Decimal] = None
    currency: str = ''
    provider_reference: str = ''
    failure_reason: str = ''

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'payment_id': self.payment_id,
            'booking_id': self.booking_id,
            'status': self.status,
            'amount': str(self.amount) if self.amount is not None else None,
            'currency': self.currency,
            'provider_reference': self.provider_reference,
            'failure_reason': self.failure_reason,
        })
        return data


@dataclass
class PaymentRefunded(DomainEvent):
    """Event: Money returned for a payment that could not be applied"""
    payment_id: Optional[int] = None
    booking_id: Optional[int] = None
    succeeded: bool = False

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'payment_id': self.payment_id,
            'booking_id': self.booking_id,
            'succeeded': self.succeeded,
        })
        return data
