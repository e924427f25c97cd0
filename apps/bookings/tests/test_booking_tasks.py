"""Tests for periodic booking tasks."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.bookings.application.command_handlers import apply_transition, create_booking
from apps.bookings.domain.state_machine import Action
from apps.bookings.models import Booking
from apps.bookings.tasks import complete_finished_bookings, expire_pending_bookings
from apps.properties.models import Property
from apps.users.models import User


@pytest.fixture
def owner(db):
    return User.objects.create_user(email="owner-tasks@example.com", password="x", role=User.RoleChoices.REALTOR)


@pytest.fixture
def guest(db):
    return User.objects.create_user(email="guest-tasks@example.com", password="x")


@pytest.fixture
def listing(owner):
    return Property.objects.create(
        owner=owner,
        title="Лофт",
        status=Property.Status.ACTIVE,
        base_price=Decimal("100.00"),
        max_guests=2,
    )


@pytest.mark.django_db
def test_expire_pending_bookings_cancels_only_expired(listing, guest):
    expired = create_booking(listing.pk, guest.pk, date(2025, 9, 1), date(2025, 9, 3))
    fresh = create_booking(listing.pk, guest.pk, date(2025, 9, 10), date(2025, 9, 12))
    Booking.objects.filter(pk=expired.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

    result = expire_pending_bookings()

    assert result == {"expired": 1}
    expired.refresh_from_db()
    fresh.refresh_from_db()
    assert expired.status == Booking.Status.CANCELED
    assert expired.cancellation_source == Booking.CancellationSource.SYSTEM
    assert fresh.status == Booking.Status.PENDING

    # Dates are free again
    replacement = create_booking(listing.pk, guest.pk, date(2025, 9, 1), date(2025, 9, 3))
    assert replacement.status == Booking.Status.PENDING


@pytest.mark.django_db
def test_expire_skips_confirmed_bookings(listing, owner, guest):
    booking = create_booking(listing.pk, guest.pk, date(2025, 9, 1), date(2025, 9, 3))
    apply_transition(booking.pk, Action.CONFIRM, owner.as_actor())
    Booking.objects.filter(pk=booking.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

    assert expire_pending_bookings() == {"expired": 0}
    booking.refresh_from_db()
    assert booking.status == Booking.Status.CONFIRMED


@pytest.mark.django_db
def test_complete_finished_bookings(listing, owner, guest):
    today = timezone.localdate()
    finished = create_booking(listing.pk, guest.pk, today - timedelta(days=3), today)
    upcoming = create_booking(listing.pk, guest.pk, today + timedelta(days=1), today + timedelta(days=3))
    for booking in (finished, upcoming):
        apply_transition(booking.pk, Action.CONFIRM, owner.as_actor())

    assert complete_finished_bookings() == {"completed": 1}

    finished.refresh_from_db()
    upcoming.refresh_from_db()
    assert finished.status == Booking.Status.COMPLETED
    assert upcoming.status == Booking.Status.CONFIRMED
