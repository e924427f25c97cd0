"""
Domain Error Taxonomy

Every rule violation in the reservation engine is raised as one of these
typed errors. Each carries a stable ``code``, an HTTP status used by the
API layer and a ``retryable`` flag so callers can tell "retry now" from
"request is invalid" from "not permitted".

- InvalidInput: malformed dates, amounts or counts
- Conflict: overlapping dates or a concurrent version clash (retryable)
- Unauthorized / Forbidden: missing identity or failed guard
- NotFound: unknown booking, property or payment
- NotPayable: booking is not in a payable status
- AmountMismatch: amount or currency differs from the booking price
- Timeout: store or gateway did not answer in time (retryable)
- InvalidTransition: status change not allowed from the current status
"""

from typing import Any, Dict, Optional


class ReservationError(Exception):
    """Base class for all typed reservation engine errors"""

    code = 'error'
    status_code = 400
    retryable = False
    default_detail = 'Reservation request failed.'

    def __init__(self, detail: Optional[str] = None, **context: Any):
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'code': self.code,
            'detail': self.detail,
            'retryable': self.retryable,
        }
        if self.context:
            data['context'] = {key: str(value) for key, value in self.context.items()}
        return data


class InvalidInput(ReservationError):
    code = 'invalid_input'
    status_code = 400
    default_detail = 'Invalid request data.'


class Conflict(ReservationError):
    code = 'conflict'
    status_code = 409
    retryable = True
    default_detail = 'Request conflicts with the current state, retry later.'


class Unauthorized(ReservationError):
    code = 'unauthorized'
    status_code = 401
    default_detail = 'Authentication required.'


class Forbidden(ReservationError):
    code = 'forbidden'
    status_code = 403
    default_detail = 'Action is not permitted for this actor.'


class NotFound(ReservationError):
    code = 'not_found'
    status_code = 404
    default_detail = 'Object not found.'


class NotPayable(ReservationError):
    code = 'not_payable'
    status_code = 409
    default_detail = 'Booking cannot be paid in its current status.'


class AmountMismatch(ReservationError):
    code = 'amount_mismatch'
    status_code = 422
    default_detail = 'Payment amount does not match the booking price.'


class Timeout(ReservationError):
    code = 'timeout'
    status_code = 503
    retryable = True
    default_detail = 'Service did not respond in time, retry later.'


class InvalidTransition(ReservationError):
    code = 'invalid_transition'
    status_code = 409
    default_detail = 'Status transition is not allowed.'
