"""Unit tests for shared value objects and the error taxonomy."""

from datetime import date
from decimal import Decimal

import pytest

from shared.domain.exceptions import Conflict, InvalidInput, ReservationError, Timeout
from shared.domain.value_objects import Actor, ActorRole, DateRange, Money


class TestMoney:
    def test_equal_by_value(self):
        assert Money(Decimal("480"), "kzt") == Money(Decimal("480.00"), "KZT")

    def test_add_same_currency(self):
        assert Money(100) + Money(Decimal("20.50")) == Money(Decimal("120.50"))

    def test_add_different_currency_rejected(self):
        with pytest.raises(InvalidInput):
            Money(100, "KZT") + Money(100, "USD")

    @pytest.mark.parametrize("amount", ["-1", "abc", "NaN"])
    def test_invalid_amounts(self, amount):
        with pytest.raises(InvalidInput):
            Money(amount)


class TestDateRange:
    def test_nights(self):
        assert len(DateRange(date(2025, 9, 1), date(2025, 9, 5))) == 4

    def test_empty_or_inverted_range_rejected(self):
        with pytest.raises(InvalidInput):
            DateRange(date(2025, 9, 5), date(2025, 9, 5))
        with pytest.raises(InvalidInput):
            DateRange(date(2025, 9, 6), date(2025, 9, 5))

    def test_adjacent_ranges_do_not_overlap(self):
        first = DateRange(date(2025, 9, 1), date(2025, 9, 5))
        assert not first.overlaps_with(DateRange(date(2025, 9, 5), date(2025, 9, 8)))
        assert first.overlaps_with(DateRange(date(2025, 9, 3), date(2025, 9, 6)))

    def test_end_is_exclusive(self):
        stay = DateRange(date(2025, 9, 1), date(2025, 9, 5))
        assert stay.contains(date(2025, 9, 1))
        assert not stay.contains(date(2025, 9, 5))


class TestActor:
    def test_system_actor_has_no_id(self):
        actor = Actor.system()
        assert actor.is_system
        assert not actor.is_admin
        assert str(actor) == "system"

    def test_user_actor_requires_id(self):
        with pytest.raises(InvalidInput):
            Actor(role=ActorRole.USER)

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidInput):
            Actor(id=1, role="owner")


def test_error_payload_and_retryability():
    error = Conflict("Dates taken", property_id=7)
    assert isinstance(error, ReservationError)
    assert error.to_dict() == {
        "code": "conflict",
        "detail": "Dates taken",
        "retryable": True,
        "context": {"property_id": "7"},
    }
    assert Timeout().retryable
    assert not InvalidInput().retryable
    assert InvalidInput().status_code == 400
