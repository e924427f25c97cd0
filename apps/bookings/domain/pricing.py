"""
Pricing Calculator

Pure function that turns a stay (dates, nightly rate, fee rules) into a
price quote. It has no side effects and reads nothing but its arguments,
so calling it at booking creation and again at payment verification with
the same inputs always yields the same total.

    total = nights * nightly_rate + sum(fees)

Fee rules are configuration, either flat or a percentage, charged once
per stay or once per night:

    flat/per_stay       amount
    flat/per_night      amount * nights
    percent/per_stay    subtotal * amount / 100
    percent/per_night   nightly_rate * amount / 100 * nights
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, List, Tuple

from shared.domain.base import ValueObject
from shared.domain.exceptions import InvalidInput
from shared.domain.value_objects import DateRange

CENT = Decimal('0.01')
HUNDRED = Decimal('100')


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidInput(f"{name} must be a finite number")
    if result < 0:
        raise InvalidInput(f"{name} cannot be negative")
    return result


@dataclass(frozen=True)
class FeeRule(ValueObject):
    """A single fee applied on top of the nightly subtotal"""

    FLAT = 'flat'
    PERCENT = 'percent'
    PER_STAY = 'per_stay'
    PER_NIGHT = 'per_night'

    KIND_CHOICES = ((FLAT, 'Flat amount'), (PERCENT, 'Percentage'))
    BASIS_CHOICES = ((PER_STAY, 'Per stay'), (PER_NIGHT, 'Per night'))

    name: str
    amount: Decimal
    kind: str = FLAT
    basis: str = PER_STAY

    def __post_init__(self):
        if self.kind not in (self.FLAT, self.PERCENT):
            raise InvalidInput(f"Unknown fee kind: {self.kind!r}")
        if self.basis not in (self.PER_STAY, self.PER_NIGHT):
            raise InvalidInput(f"Unknown fee basis: {self.basis!r}")
        object.__setattr__(self, 'amount', _to_decimal(self.amount, f"Fee {self.name!r} amount"))

    def apply(self, nights: int, nightly_rate: Decimal, subtotal: Decimal) -> Decimal:
        if self.kind == self.FLAT:
            fee = self.amount if self.basis == self.PER_STAY else self.amount * nights
        elif self.basis == self.PER_STAY:
            fee = subtotal * self.amount / HUNDRED
        else:
            fee = nightly_rate * self.amount / HUNDRED * nights
        return quantize(fee)

    def to_snapshot(self) -> dict:
        return {
            'name': self.name,
            'kind': self.kind,
            'basis': self.basis,
            'amount': str(self.amount),
        }

    @classmethod
    def from_snapshot(cls, data: dict) -> 'FeeRule':
        return cls(
            name=data['name'],
            kind=data.get('kind', cls.FLAT),
            basis=data.get('basis', cls.PER_STAY),
            amount=Decimal(data['amount']),
        )


@dataclass(frozen=True)
class Quote(ValueObject):
    """Result of pricing a stay"""
    nights: int
    nightly_rate: Decimal
    subtotal: Decimal
    fees: Tuple[Tuple[str, Decimal], ...] = field(default_factory=tuple)
    fees_total: Decimal = Decimal('0.00')
    total: Decimal = Decimal('0.00')
    currency: str = 'KZT'

    def fee_breakdown(self) -> List[dict]:
        return [{'name': name, 'amount': str(amount)} for name, amount in self.fees]


def price(
    check_in: date,
    check_out: date,
    nightly_rate,
    fee_rules: Iterable[FeeRule] = (),
    currency: str = 'KZT',
) -> Quote:
    """
    Price a stay of whole nights in the half-open range [check_in, check_out)

    Raises:
        InvalidInput: check_in is not before check_out, or the rate is negative
    """
    nights = len(DateRange(check_in, check_out))
    rate = quantize(_to_decimal(nightly_rate, 'Nightly rate'))
    subtotal = quantize(rate * nights)

    fees = tuple(
        (rule.name, rule.apply(nights, rate, subtotal))
        for rule in fee_rules
    )
    fees_total = quantize(sum((amount for _, amount in fees), Decimal('0')))

    return Quote(
        nights=nights,
        nightly_rate=rate,
        subtotal=subtotal,
        fees=fees,
        fees_total=fees_total,
        total=quantize(subtotal + fees_total),
        currency=currency.upper(),
    )
