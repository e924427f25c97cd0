"""Finances app package.

Payments for confirmed bookings: idempotent charges through the
configured payment gateway (Kaspi Pay), webhook callbacks and the
periodic reconciliation of payments left pending.
"""
