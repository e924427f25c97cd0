"""Engine settings with defaults.

Values come from ``settings.RESERVATIONS``; anything missing falls back
to :data:`DEFAULTS`.
"""

from __future__ import annotations

from typing import Any

from django.conf import settings  # type: ignore

DEFAULTS: dict[str, Any] = {
    # Minutes a pending booking holds its dates before the system cancels it
    "HOLD_MINUTES": 24 * 60,
    # Bounded wait for the per-property lock (PostgreSQL only)
    "LOCK_TIMEOUT_MS": 5000,
    # Fee rules applied to every property, same shape as FeeRule snapshots
    "PLATFORM_FEES": [],
    # Pending payments older than this are polled at the gateway
    "RECONCILE_AFTER_MINUTES": 15,
}


def reservation_setting(name: str) -> Any:
    overrides = getattr(settings, "RESERVATIONS", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
