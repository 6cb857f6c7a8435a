# backend/classbook/services/booking_service.py
"""
Booking Service for the booking core.

Creates and cancels bookings on capacity-limited class sessions and manages
the waitlist of full ones. Every mutation runs in one transaction that first
takes the class session lock, so the capacity check and the insert observe
the same confirmed count even with many writers across processes.

Outcomes are returned as ``BookingResult`` or ``WaitlistResult`` values;
nothing here retries.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, OperationError, TransactionState, WaitlistStatus
from ..core.exceptions import (
    LockContentionException,
    NotFoundException,
    RepositoryException,
)
from ..core.resource_lock import lock_class_session
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.waitlist_entry import WaitlistEntry
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..repositories.class_session_repository import ClassSessionRepository
from ..repositories.waitlist_repository import WaitlistRepository
from .base import BaseService
from .results import (
    CONTENDED_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    BookingResult,
    WaitlistResult,
    error_for_exception,
)

logger = logging.getLogger(__name__)

CAPACITY_EXCEEDED_MESSAGE = "This class is full"
ALREADY_BOOKED_MESSAGE = "You are already booked into this class"
SESSION_NOT_FOUND_MESSAGE = "Class session not found"
BOOKING_NOT_FOUND_MESSAGE = "Booking not found"
WAITLIST_NOT_FOUND_MESSAGE = "Waitlist entry not found"
CLASS_STARTED_MESSAGE = "This class has already started"
ALREADY_WAITLISTED_MESSAGE = "You are already on the waitlist for this class"
SPOTS_AVAILABLE_MESSAGE = "Class has available spots. Please book directly."
NOT_WAITING_MESSAGE = "Cannot cancel this waitlist entry"
LEFT_WAITLIST_MESSAGE = "Removed from waitlist"

_FAILURES = (NotFoundException, LockContentionException, RepositoryException, SQLAlchemyError)

R = TypeVar("R", BookingResult, WaitlistResult)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    The service must be handed a session with no transaction in progress;
    each mutating method commits or rolls back before returning.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[BookingRepository] = None,
        session_repository: Optional[ClassSessionRepository] = None,
        waitlist_repository: Optional[WaitlistRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.session_repository = (
            session_repository or RepositoryFactory.create_class_session_repository(db)
        )
        self.waitlist_repository = (
            waitlist_repository or RepositoryFactory.create_waitlist_repository(db)
        )

    @BaseService.measure_operation("create_booking")
    def create_booking(self, session_id: str, client_id: str) -> BookingResult:
        """
        Book ``client_id`` into a class session without exceeding its capacity.

        Args:
            session_id: Class session to book
            client_id: Client taking the spot

        Returns:
            BookingResult. On success ``booking`` is the committed booking.
            Expected failures are CAPACITY_EXCEEDED, ALREADY_BOOKED, NOT_FOUND,
            CONTENDED (lock wait timed out, safe to retry) and INFRA_ERROR.
        """
        self.log_operation("create_booking", class_session_id=session_id, client_id=client_id)
        state = TransactionState.INITIATED

        try:
            lock_class_session(self.db, session_id)
            state = TransactionState.LOCKED

            # Fresh reads under the lock; nothing cached before it may decide capacity
            session = self.session_repository.get_by_id(session_id, refresh=True)
            if session is None:
                raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            capacity = session.capacity
            studio_id = session.studio_id
            confirmed = self.repository.count_confirmed(session_id)

            if self.repository.find_confirmed_for_client(session_id, client_id) is not None:
                self.rollback()
                return self._finish(
                    BookingResult(
                        ok=False,
                        state=TransactionState.REJECTED,
                        error=OperationError.ALREADY_BOOKED,
                        message=ALREADY_BOOKED_MESSAGE,
                        confirmed_count=confirmed,
                        capacity=capacity,
                    ),
                    "create_booking",
                )

            if confirmed >= capacity:
                self.rollback()
                return self._finish(
                    BookingResult(
                        ok=False,
                        state=TransactionState.REJECTED,
                        error=OperationError.CAPACITY_EXCEEDED,
                        message=CAPACITY_EXCEEDED_MESSAGE,
                        confirmed_count=confirmed,
                        capacity=capacity,
                    ),
                    "create_booking",
                )
            state = TransactionState.VALIDATED

            booking = self.repository.create_confirmed(
                studio_id=studio_id,
                class_session_id=session_id,
                client_id=client_id,
            )
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish(
                self._failure(exc, state, session_id, BookingResult), "create_booking"
            )

        self.logger.info(
            "Booking %s confirmed for class %s (%d/%d)",
            booking.id,
            session_id,
            confirmed + 1,
            capacity,
        )
        return self._finish(
            BookingResult(
                ok=True,
                state=TransactionState.COMMITTED,
                booking=booking,
                confirmed_count=confirmed + 1,
                capacity=capacity,
            ),
            "create_booking",
        )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str) -> BookingResult:
        """
        Cancel a booking and free its spot.

        Cancelling an already cancelled booking succeeds without changes.
        """
        self.log_operation("cancel_booking", booking_id=booking_id)
        state = TransactionState.INITIATED

        try:
            # class_session_id never changes, so it may be read before the lock
            existing = self.repository.get_by_id(booking_id)
            if existing is None:
                raise NotFoundException(BOOKING_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            session_id = existing.class_session_id

            lock_class_session(self.db, session_id)
            state = TransactionState.LOCKED

            booking = self.repository.get_by_id(booking_id, refresh=True)
            if booking is None:
                raise NotFoundException(BOOKING_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            state = TransactionState.VALIDATED

            if booking.status == BookingStatus.CONFIRMED.value:
                self.repository.mark_cancelled(booking, utc_now())
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish(
                self._failure(exc, state, booking_id, BookingResult), "cancel_booking"
            )

        return self._finish(
            BookingResult(ok=True, state=TransactionState.COMMITTED, booking=booking),
            "cancel_booking",
        )

    @BaseService.measure_operation("join_waitlist")
    def join_waitlist(
        self, session_id: str, client_id: str, now: Optional[datetime] = None
    ) -> WaitlistResult:
        """
        Put ``client_id`` at the end of the waitlist of a full class session.

        Fullness, duplicates and the next position are decided under the class
        session lock, so concurrent joins get distinct consecutive positions.

        Returns:
            WaitlistResult with the 1-based ``position``. Expected failures are
            SPOTS_AVAILABLE (book directly instead), ALREADY_BOOKED,
            ALREADY_WAITLISTED, INVALID_REQUEST (class started), NOT_FOUND,
            CONTENDED and INFRA_ERROR.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        self.log_operation("join_waitlist", class_session_id=session_id, client_id=client_id)
        state = TransactionState.INITIATED

        try:
            lock_class_session(self.db, session_id)
            state = TransactionState.LOCKED

            session = self.session_repository.get_by_id(session_id, refresh=True)
            if session is None:
                raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            capacity = session.capacity
            studio_id = session.studio_id

            if session.start_time <= now:
                return self._waitlist_rejection(
                    "join_waitlist", OperationError.INVALID_REQUEST, CLASS_STARTED_MESSAGE
                )
            if self.repository.find_confirmed_for_client(session_id, client_id) is not None:
                return self._waitlist_rejection(
                    "join_waitlist", OperationError.ALREADY_BOOKED, ALREADY_BOOKED_MESSAGE
                )
            existing = self.waitlist_repository.find_waiting_for_client(session_id, client_id)
            if existing is not None:
                return self._waitlist_rejection(
                    "join_waitlist",
                    OperationError.ALREADY_WAITLISTED,
                    ALREADY_WAITLISTED_MESSAGE,
                    position=existing.position,
                )
            confirmed = self.repository.count_confirmed(session_id)
            if confirmed < capacity:
                return self._waitlist_rejection(
                    "join_waitlist",
                    OperationError.SPOTS_AVAILABLE,
                    SPOTS_AVAILABLE_MESSAGE,
                    spots_left=capacity - confirmed,
                )
            state = TransactionState.VALIDATED

            position = self.waitlist_repository.last_waiting_position(session_id) + 1
            entry = self.waitlist_repository.create_waiting(
                studio_id=studio_id,
                class_session_id=session_id,
                client_id=client_id,
                position=position,
            )
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish(
                self._failure(exc, state, session_id, WaitlistResult), "join_waitlist"
            )

        self.logger.info("Client %s waitlisted for class %s at #%d", client_id, session_id, position)
        return self._finish(
            WaitlistResult(
                ok=True,
                state=TransactionState.COMMITTED,
                entry=entry,
                position=position,
                message=f"You are #{position} on the waitlist.",
            ),
            "join_waitlist",
        )

    @BaseService.measure_operation("leave_waitlist")
    def leave_waitlist(
        self, entry_id: str, client_id: str, studio_id: str, now: Optional[datetime] = None
    ) -> WaitlistResult:
        """
        Cancel a client's waiting entry and move everyone behind it up by one.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        self.log_operation("leave_waitlist", waitlist_id=entry_id, client_id=client_id)
        state = TransactionState.INITIATED

        try:
            # class_session_id never changes, so it may be read before the lock
            existing = self.waitlist_repository.get_for_client(entry_id, client_id, studio_id)
            if existing is None:
                raise NotFoundException(WAITLIST_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            session_id = existing.class_session_id

            lock_class_session(self.db, session_id)
            state = TransactionState.LOCKED

            entry = self.waitlist_repository.get_for_client(entry_id, client_id, studio_id)
            if entry is None:
                raise NotFoundException(WAITLIST_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            if entry.status != WaitlistStatus.WAITING.value:
                return self._waitlist_rejection(
                    "leave_waitlist", OperationError.INVALID_REQUEST, NOT_WAITING_MESSAGE
                )
            state = TransactionState.VALIDATED

            vacated = entry.position
            self.waitlist_repository.mark_cancelled(entry, now)
            moved = self.waitlist_repository.close_gap(session_id, vacated)
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish(
                self._failure(exc, state, entry_id, WaitlistResult), "leave_waitlist"
            )

        self.logger.info(
            "Waitlist entry %s left class %s; %d entries moved up", entry_id, session_id, moved
        )
        return self._finish(
            WaitlistResult(
                ok=True,
                state=TransactionState.COMMITTED,
                entry=entry,
                message=LEFT_WAITLIST_MESSAGE,
            ),
            "leave_waitlist",
        )

    def list_waitlist_entries(self, client_id: str, studio_id: str) -> List[WaitlistEntry]:
        """Waiting entries of a client in one studio, newest first."""
        return self.waitlist_repository.list_waiting_for_client(client_id, studio_id)

    def _waitlist_rejection(
        self,
        operation: str,
        error: OperationError,
        message: str,
        position: Optional[int] = None,
        spots_left: Optional[int] = None,
    ) -> WaitlistResult:
        self.rollback()
        return self._finish(
            WaitlistResult(
                ok=False,
                state=TransactionState.REJECTED,
                error=error,
                message=message,
                position=position,
                spots_left=spots_left,
            ),
            operation,
        )

    def _failure(
        self, exc: BaseException, state: TransactionState, resource_id: str, result_type: Type[R]
    ) -> R:
        error = error_for_exception(exc)
        if error == OperationError.NOT_FOUND:
            message = getattr(exc, "message", SESSION_NOT_FOUND_MESSAGE)
        elif error == OperationError.CONTENDED:
            message = CONTENDED_MESSAGE
        else:
            message = GENERIC_FAILURE_MESSAGE
            self.logger.error(
                "Booking transaction failed in state %s for %s: %s",
                state.value,
                resource_id,
                exc,
                exc_info=True,
            )
        return result_type(ok=False, state=TransactionState.FAILED, error=error, message=message)

    @staticmethod
    def _finish(result: R, operation: str) -> R:
        outcome = "committed" if result.ok else (result.error or OperationError.INFRA_ERROR).value
        prometheus_metrics.record_booking_outcome(operation, outcome)
        return result
