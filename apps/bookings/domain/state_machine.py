"""
Booking Status Finite State Machine

State transitions:
- PENDING -> CONFIRMED (confirm: property owner or admin)
- PENDING -> CANCELED (cancel: requester, owner, admin or the system hold sweep)
- CONFIRMED -> CANCELED (cancel: owner/admin; requester only before the cutoff)
- CONFIRMED -> COMPLETED (complete: system, after settlement or once the stay ended)

COMPLETED and CANCELED are terminal. Any other (status, action) pair is
rejected with InvalidTransition; a failed guard is rejected with Forbidden.

This module is pure: it decides the target status from a read-only view
of the booking and never touches storage.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from shared.domain.exceptions import Forbidden, InvalidTransition
from shared.domain.value_objects import Actor


class BookingStatus:
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELED = 'canceled'

    # Statuses that occupy the property's calendar
    BLOCKING = (PENDING, CONFIRMED, COMPLETED)
    TERMINAL = (COMPLETED, CANCELED)


class Action:
    CONFIRM = 'confirm'
    CANCEL = 'cancel'
    COMPLETE = 'complete'

    ALL = (CONFIRM, CANCEL, COMPLETE)


@dataclass(frozen=True)
class TransitionContext:
    """Everything the guards need to know about one booking"""
    status: str
    guest_id: object
    owner_id: object
    check_in: date
    check_out: date
    cancellation_cutoff_days: int = 0
    has_completed_payment: bool = False


def _today(now) -> date:
    return now.date() if isinstance(now, datetime) else now


# ===== Guards =====

def is_owner_or_admin(ctx: TransitionContext, actor: Actor, now) -> bool:
    return actor.is_admin or (not actor.is_system and actor.id == ctx.owner_id)


def is_stakeholder_or_system(ctx: TransitionContext, actor: Actor, now) -> bool:
    return actor.is_system or is_owner_or_admin(ctx, actor, now) or actor.id == ctx.guest_id


def may_cancel_confirmed(ctx: TransitionContext, actor: Actor, now) -> bool:
    if is_owner_or_admin(ctx, actor, now):
        return True
    if actor.is_system or actor.id != ctx.guest_id:
        return False
    deadline = ctx.check_in - timedelta(days=ctx.cancellation_cutoff_days)
    return _today(now) < deadline


def may_complete(ctx: TransitionContext, actor: Actor, now) -> bool:
    if not actor.is_system:
        return False
    return ctx.has_completed_payment or _today(now) >= ctx.check_out


Guard = Callable[[TransitionContext, Actor, object], bool]

TRANSITIONS: Dict[Tuple[str, str], Tuple[str, Guard]] = {
    (BookingStatus.PENDING, Action.CONFIRM): (BookingStatus.CONFIRMED, is_owner_or_admin),
    (BookingStatus.PENDING, Action.CANCEL): (BookingStatus.CANCELED, is_stakeholder_or_system),
    (BookingStatus.CONFIRMED, Action.CANCEL): (BookingStatus.CANCELED, may_cancel_confirmed),
    (BookingStatus.CONFIRMED, Action.COMPLETE): (BookingStatus.COMPLETED, may_complete),
}


def allowed_actions(status: str) -> Tuple[str, ...]:
    return tuple(action for (source, action) in TRANSITIONS if source == status)


def resolve_transition(ctx: TransitionContext, action: str, actor: Actor, now) -> str:
    """
    Decide the target status for ``action`` applied by ``actor`` at ``now``

    Raises:
        InvalidTransition: the (status, action) pair is not in the table
        Forbidden: the pair exists but the guard rejected this actor or time
    """
    entry: Optional[Tuple[str, Guard]] = TRANSITIONS.get((ctx.status, action))
    if entry is None:
        raise InvalidTransition(
            f"Cannot {action} a booking in status {ctx.status}.",
            status=ctx.status,
            action=action,
        )

    target, guard = entry
    if not guard(ctx, actor, now):
        raise Forbidden(
            f"Actor {actor} may not {action} a booking in status {ctx.status}.",
            status=ctx.status,
            action=action,
        )
    return target
