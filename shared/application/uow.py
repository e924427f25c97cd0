"""
Unit of Work Pattern

Manages database transactions, translates storage aborts into typed
domain errors and ensures that domain events are published only after
a successful commit.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from django.db import DatabaseError, IntegrityError, OperationalError, transaction

from shared.domain.base import DomainEvent
from shared.domain.exceptions import Conflict, ReservationError, Timeout

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes that mean "someone else won, try again"
SERIALIZATION_FAILURE = '40001'
DEADLOCK_DETECTED = '40P01'


def translate_database_error(exc: DatabaseError) -> Optional[ReservationError]:
    """
    Map a storage-level abort to a retryable domain error

    Returns None for errors that are programming mistakes rather than
    concurrency outcomes; those must propagate unchanged.
    """
    cause = exc.__cause__
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)

    if isinstance(exc, IntegrityError) or sqlstate in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
        return Conflict(
            "Concurrent update detected, retry the request.",
            reason=exc.__class__.__name__,
        )
    if isinstance(exc, OperationalError):
        return Timeout(
            "Storage is busy, retry the request.",
            reason=str(exc),
        )
    return None


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @abstractmethod
    def add_event(self, event: DomainEvent):
        """Register an event to publish after commit"""
        pass


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Wraps ``transaction.atomic()``: either everything written inside the
    block is committed or nothing is. Raw storage errors never leak out,
    they are re-raised as Conflict or Timeout.

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = Booking.objects.create(...)
            uow.add_event(BookingCreated(...))
            # Transaction commits here
        # Events are published after commit
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._transaction = None

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic()
        try:
            self._transaction.__enter__()
        except DatabaseError as exc:
            # BEGIN IMMEDIATE waits for the SQLite write lock
            translated = translate_database_error(exc)
            if translated is None:
                raise
            raise translated from exc
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

        try:
            self._transaction.__exit__(exc_type, exc_val, exc_tb)
        except DatabaseError as exc:
            # Commit itself failed (e.g. database locked on COMMIT)
            self._events.clear()
            translated = translate_database_error(exc)
            if translated is None:
                raise
            raise translated from exc

        if isinstance(exc_val, DatabaseError):
            translated = translate_database_error(exc_val)
            if translated is not None:
                raise translated from exc_val
        return False

    def commit(self):
        """
        Schedule event publishing

        Events are published using Django's transaction.on_commit()
        so they are only sent after the database commit succeeds.
        """
        logger.debug(f"Committing transaction with {len(self._events)} events")

        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events))

    def rollback(self):
        """Rollback changes and discard events"""
        logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    @property
    def events(self) -> List[DomainEvent]:
        return self._events.copy()

    def _publish_events(self, events: List[DomainEvent]):
        """
        Publish collected events to message bus

        Called after successful transaction commit.
        """
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            message_bus.publish_events(events)
        except Exception as e:
            # Rows are already committed; publishing failures are only logged
            logger.error(f"Error publishing events: {e}", exc_info=True)
