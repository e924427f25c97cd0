"""Domain services for booking workflows.

These helpers are only meaningful inside ``transaction.atomic()``: the
property lock they take is released when the surrounding transaction
commits or rolls back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import connection, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from apps.properties.models import Property
from shared.domain.exceptions import Conflict, NotFound

from .conf import reservation_setting

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


def _set_lock_timeout() -> None:
    """Bound the wait for row locks to the current transaction (PostgreSQL)."""

    if connection.vendor != "postgresql":
        return
    timeout_ms = int(reservation_setting("LOCK_TIMEOUT_MS"))
    with connection.cursor() as cursor:
        cursor.execute("SET LOCAL lock_timeout = %s", [f"{timeout_ms}ms"])


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def lock_property(property_id) -> Property:
    """
    Take the per-property exclusive lock for the current transaction.

    Every booking creation for the same property goes through this row
    lock, so the overlap query and the insert that follows are serialized.
    On SQLite ``select_for_update`` is a no-op; the ``IMMEDIATE``
    transaction mode configured for that backend serializes writers instead.
    """

    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_property() must be called inside transaction.atomic()")

    _set_lock_timeout()
    queryset = _lock_queryset_if_possible(Property.objects.filter(pk=property_id))
    property_obj = queryset.first()
    if property_obj is None:
        raise NotFound(f"Property {property_id} not found.", property_id=property_id)
    return property_obj


def find_overlapping_bookings(property_id, check_in, check_out, *, exclude_booking_id=None) -> "QuerySet":
    """Blocking bookings of the property that intersect [check_in, check_out)."""

    from .models import Booking  # Local import to prevent circular dependency

    bookings_qs = Booking.objects.filter(property_id=property_id).blocking().overlapping(check_in, check_out)
    if exclude_booking_id is not None:
        bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)
    return bookings_qs


def ensure_property_is_available(
    property_id,
    check_in,
    check_out,
    *,
    exclude_booking_id=None,
) -> None:
    """Ensure the property is free for the given period."""

    overlapping = find_overlapping_bookings(
        property_id,
        check_in,
        check_out,
        exclude_booking_id=exclude_booking_id,
    )
    clash = overlapping.order_by("check_in").values_list("booking_code", "check_in", "check_out").first()
    if clash is not None:
        code, clash_in, clash_out = clash
        logger.info(
            f"Property {property_id} busy for {check_in} - {check_out}: "
            f"overlaps booking {code} ({clash_in} - {clash_out})"
        )
        raise Conflict(
            "Объект недоступен на выбранные даты.",
            property_id=property_id,
            conflicting_booking=code,
        )
