"""Tests for the waitlist operations of BookingService."""

import pytest
from sqlalchemy.orm import Session

from classbook.core.enums import OperationError, TransactionState, WaitlistStatus
from classbook.core.exceptions import BusinessRuleException, ConflictException
from classbook.core.ulid_helper import generate_ulid
from classbook.models import ClassSession, WaitlistEntry
from classbook.services.booking_service import BookingService
from tests.factories.schedule_builders import (
    OTHER_STUDIO_ID,
    STUDIO_ID,
    at,
    create_class_session,
    create_confirmed_bookings,
)


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db)


@pytest.fixture
def full_class(db: Session) -> ClassSession:
    class_session = create_class_session(db, capacity=2)
    create_confirmed_bookings(db, class_session, 2)
    return class_session


def _positions(db: Session, class_session_id: str) -> dict[str, int]:
    db.expire_all()
    rows = (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.class_session_id == class_session_id,
            WaitlistEntry.status == WaitlistStatus.WAITING.value,
        )
        .all()
    )
    positions = {row.client_id: row.position for row in rows}
    db.rollback()
    return positions


class TestJoinWaitlist:
    def test_full_class_puts_client_at_the_end(self, db, booking_service, full_class):
        first = booking_service.join_waitlist(full_class.id, "CLIENT_A")
        second = booking_service.join_waitlist(full_class.id, "CLIENT_B")

        assert first.ok and second.ok
        assert first.state == TransactionState.COMMITTED
        assert (first.position, second.position) == (1, 2)
        assert second.to_payload()["message"] == "You are #2 on the waitlist."
        assert not db.in_transaction()
        assert _positions(db, full_class.id) == {"CLIENT_A": 1, "CLIENT_B": 2}

    def test_class_with_spots_left_is_refused(self, db, booking_service):
        class_session = create_class_session(db, capacity=3)
        create_confirmed_bookings(db, class_session, 1)

        result = booking_service.join_waitlist(class_session.id, "CLIENT_A")

        assert result.error == OperationError.SPOTS_AVAILABLE
        assert result.state == TransactionState.REJECTED
        assert result.spots_left == 2
        assert not db.in_transaction()
        with pytest.raises(BusinessRuleException):
            result.raise_for_error()

    def test_waiting_client_cannot_join_twice(self, booking_service, full_class):
        booking_service.join_waitlist(full_class.id, "CLIENT_A")

        result = booking_service.join_waitlist(full_class.id, "CLIENT_A")

        assert result.error == OperationError.ALREADY_WAITLISTED
        assert result.position == 1
        with pytest.raises(ConflictException):
            result.raise_for_error()

    def test_booked_client_cannot_join(self, db, booking_service):
        class_session = create_class_session(db, capacity=1)
        booking_service.create_booking(class_session.id, "CLIENT_A")

        result = booking_service.join_waitlist(class_session.id, "CLIENT_A")

        assert result.error == OperationError.ALREADY_BOOKED

    def test_started_class_is_refused(self, booking_service, full_class):
        result = booking_service.join_waitlist(full_class.id, "CLIENT_A", now=at(10, 5))

        assert result.error == OperationError.INVALID_REQUEST
        assert result.message == "This class has already started"

    def test_unknown_session_is_not_found(self, booking_service):
        result = booking_service.join_waitlist(generate_ulid(), "CLIENT_A")

        assert result.error == OperationError.NOT_FOUND
        assert result.state == TransactionState.FAILED


class TestLeaveWaitlist:
    def test_leaving_moves_later_clients_up(self, db, booking_service, full_class):
        entries = {
            client_id: booking_service.join_waitlist(full_class.id, client_id).entry.id
            for client_id in ("CLIENT_A", "CLIENT_B", "CLIENT_C")
        }

        result = booking_service.leave_waitlist(entries["CLIENT_A"], "CLIENT_A", STUDIO_ID)

        assert result.ok
        assert result.entry.status == WaitlistStatus.CANCELLED.value
        assert result.entry.cancelled_at is not None
        assert _positions(db, full_class.id) == {"CLIENT_B": 1, "CLIENT_C": 2}

    def test_rejoining_after_leaving_goes_to_the_end(self, db, booking_service, full_class):
        first = booking_service.join_waitlist(full_class.id, "CLIENT_A")
        booking_service.join_waitlist(full_class.id, "CLIENT_B")
        booking_service.leave_waitlist(first.entry.id, "CLIENT_A", STUDIO_ID)

        again = booking_service.join_waitlist(full_class.id, "CLIENT_A")

        assert again.position == 2
        assert _positions(db, full_class.id) == {"CLIENT_B": 1, "CLIENT_A": 2}

    def test_cancelled_entry_cannot_be_left_again(self, booking_service, full_class):
        entry_id = booking_service.join_waitlist(full_class.id, "CLIENT_A").entry.id
        booking_service.leave_waitlist(entry_id, "CLIENT_A", STUDIO_ID)

        result = booking_service.leave_waitlist(entry_id, "CLIENT_A", STUDIO_ID)

        assert result.error == OperationError.INVALID_REQUEST
        assert result.message == "Cannot cancel this waitlist entry"

    @pytest.mark.parametrize(
        "client_id, studio_id", [("CLIENT_B", STUDIO_ID), ("CLIENT_A", OTHER_STUDIO_ID)]
    )
    def test_only_the_client_can_leave(self, booking_service, full_class, client_id, studio_id):
        entry_id = booking_service.join_waitlist(full_class.id, "CLIENT_A").entry.id

        result = booking_service.leave_waitlist(entry_id, client_id, studio_id)

        assert result.error == OperationError.NOT_FOUND
        assert result.message == "Waitlist entry not found"


def test_list_waitlist_entries_only_shows_waiting(db, booking_service, full_class):
    other_class = create_class_session(db, capacity=1)
    create_confirmed_bookings(db, other_class, 1)
    kept = booking_service.join_waitlist(full_class.id, "CLIENT_A")
    left = booking_service.join_waitlist(other_class.id, "CLIENT_A")
    booking_service.leave_waitlist(left.entry.id, "CLIENT_A", STUDIO_ID)

    entries = booking_service.list_waitlist_entries("CLIENT_A", STUDIO_ID)

    assert [entry.id for entry in entries] == [kept.entry.id]
