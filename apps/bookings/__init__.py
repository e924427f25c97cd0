"""Bookings app package.

This app encapsulates the booking domain: the booking model, the
overlap guard that admits bookings, the status state machine, pricing
and the periodic sweeps for hold expiry and completion. Bookings ensure
atomicity and enforce date overlap constraints via database transactions
and the use of exclusion constraints when supported.
"""
