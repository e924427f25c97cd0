"""
DRF exception handler for domain errors.

Renders ``ReservationError`` subclasses as ``{"code", "detail", "retryable"}``
with the status code declared on the error class. Retryable errors also get
a ``Retry-After`` header. Everything else falls back to DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain.exceptions import ReservationError

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 1


def reservation_exception_handler(exc, context):  # type: ignore
    if isinstance(exc, ReservationError):
        view = context.get("view")
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc.detail}"
        )
        response = Response(exc.to_dict(), status=exc.status_code)
        if exc.retryable:
            response["Retry-After"] = str(RETRY_AFTER_SECONDS)
        return response
    return drf_exception_handler(exc, context)
