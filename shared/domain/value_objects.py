"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency
- DateRange: Represents a range of dates (check-in to check-out)
- Actor: Identity and role an operation runs on behalf of
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from shared.domain.base import ValueObject
from shared.domain.exceptions import InvalidInput


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with an ISO 4217 currency code.
    Two Money objects are equal when amount and currency are equal,
    so Decimal('480') equals Decimal('480.00').
    """
    amount: Decimal
    currency: str = 'KZT'

    def __post_init__(self):
        try:
            amount = Decimal(str(self.amount))
        except (InvalidOperation, ValueError):
            raise InvalidInput(f"Invalid amount: {self.amount!r}")
        if not amount.is_finite():
            raise InvalidInput(f"Invalid amount: {self.amount!r}")
        if amount < 0:
            raise InvalidInput("Amount cannot be negative")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise InvalidInput(f"Unsupported currency: {self.currency!r}")
        object.__setattr__(self, 'amount', amount)
        object.__setattr__(self, 'currency', self.currency.upper())

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise InvalidInput(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by int or Decimal")
        return Money(self.amount * factor, self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive).
    Used for booking periods and overlap checks.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise InvalidInput(
                f"Start date ({self.start_date}) must be before end date ({self.end_date})"
            )

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        end_date is exclusive, so adjacent ranges don't overlap.

        Examples:
            - DateRange(25, 28) overlaps with DateRange(27, 30) -> True
            - DateRange(25, 28) overlaps with DateRange(28, 31) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        # start1 < end2 AND start2 < end1
        return (self.start_date < other.end_date and
                other.start_date < self.end_date)

    def contains(self, check_date: date) -> bool:
        """start_date is inclusive, end_date is exclusive"""
        return self.start_date <= check_date < self.end_date

    def __len__(self) -> int:
        """Number of nights in this range"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.strftime('%d.%m.%Y')} - {self.end_date.strftime('%d.%m.%Y')}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"


class ActorRole:
    """Platform-level roles known to the authorization guards"""
    USER = 'user'
    ADMIN = 'admin'
    SYSTEM = 'system'

    ALL = (USER, ADMIN, SYSTEM)


@dataclass(frozen=True)
class Actor(ValueObject):
    """
    Authenticated identity on whose behalf an operation runs

    Ownership and requester checks compare ``id`` with the booking,
    so one user can own one property and book another.
    The system actor (scheduled sweeps, settlement) has no user id.
    """
    id: object = None
    role: str = ActorRole.USER

    def __post_init__(self):
        if self.role not in ActorRole.ALL:
            raise InvalidInput(f"Unknown actor role: {self.role!r}")
        if self.role != ActorRole.SYSTEM and self.id is None:
            raise InvalidInput("Actor id is required")

    @classmethod
    def system(cls) -> 'Actor':
        return cls(id=None, role=ActorRole.SYSTEM)

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM

    def __str__(self):
        return 'system' if self.is_system else f"{self.role}:{self.id}"
