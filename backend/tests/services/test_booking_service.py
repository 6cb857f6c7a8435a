"""
Tests for BookingService.

Covers the capacity check, duplicate bookings, cancellation and the typed
failure results. Concurrency is covered in the integration race tests.
"""

import pytest
from sqlalchemy.orm import Session, sessionmaker

from classbook.core.config import Settings
from classbook.core.enums import BookingStatus, OperationError, TransactionState
from classbook.core.exceptions import ConflictException, LockContentionException, NotFoundException
from classbook.core.resource_lock import lock_class_session
from classbook.core.ulid_helper import generate_ulid
from classbook.database.engines import create_store_engine
from classbook.services.booking_service import BookingService
from tests.factories.schedule_builders import (
    confirmed_count,
    create_class_session,
    create_confirmed_bookings,
)


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db)


def test_create_booking_confirms_a_seat(db, booking_service):
    class_session = create_class_session(db, capacity=3)
    client_id = generate_ulid()

    result = booking_service.create_booking(class_session.id, client_id)

    assert result.ok
    assert result.state == TransactionState.COMMITTED
    assert result.booking.client_id == client_id
    assert result.booking.status == BookingStatus.CONFIRMED.value
    assert result.booking.studio_id == class_session.studio_id
    assert result.confirmed_count == 1
    assert not db.in_transaction()
    assert confirmed_count(db, class_session.id) == 1


def test_capacity_two_scenario(db, booking_service):
    class_session = create_class_session(db, capacity=2)

    first = booking_service.create_booking(class_session.id, "CLIENT_A")
    second = booking_service.create_booking(class_session.id, "CLIENT_B")
    third = booking_service.create_booking(class_session.id, "CLIENT_C")

    assert first.ok and second.ok
    assert not third.ok
    assert third.error == OperationError.CAPACITY_EXCEEDED
    assert third.state == TransactionState.REJECTED
    assert third.confirmed_count == 2
    assert third.capacity == 2
    assert confirmed_count(db, class_session.id) == 2


def test_rejection_releases_the_lock(db, booking_service):
    class_session = create_class_session(db, capacity=0)

    result = booking_service.create_booking(class_session.id, "CLIENT_A")

    assert result.error == OperationError.CAPACITY_EXCEEDED
    assert not db.in_transaction()


def test_cancelled_bookings_do_not_count(db, booking_service):
    class_session = create_class_session(db, capacity=1)
    booked = booking_service.create_booking(class_session.id, "CLIENT_A")

    cancelled = booking_service.cancel_booking(booked.booking.id)
    rebooked = booking_service.create_booking(class_session.id, "CLIENT_B")

    assert cancelled.ok
    assert cancelled.booking.status == BookingStatus.CANCELLED.value
    assert cancelled.booking.cancelled_at is not None
    assert rebooked.ok
    assert confirmed_count(db, class_session.id) == 1


def test_cancel_is_idempotent(db, booking_service):
    class_session = create_class_session(db, capacity=1)
    booked = booking_service.create_booking(class_session.id, "CLIENT_A")
    first = booking_service.cancel_booking(booked.booking.id)

    second = booking_service.cancel_booking(booked.booking.id)

    assert second.ok
    assert second.booking.cancelled_at == first.booking.cancelled_at


def test_cancel_unknown_booking_is_not_found(booking_service):
    result = booking_service.cancel_booking(generate_ulid())

    assert result.error == OperationError.NOT_FOUND
    assert result.state == TransactionState.FAILED


def test_same_client_cannot_book_twice(db, booking_service):
    class_session = create_class_session(db, capacity=5)
    booking_service.create_booking(class_session.id, "CLIENT_A")

    result = booking_service.create_booking(class_session.id, "CLIENT_A")

    assert result.error == OperationError.ALREADY_BOOKED
    assert result.capacity == 5
    assert not db.in_transaction()
    assert confirmed_count(db, class_session.id) == 1


def test_unknown_session_is_not_found(booking_service):
    result = booking_service.create_booking(generate_ulid(), "CLIENT_A")

    assert not result.ok
    assert result.error == OperationError.NOT_FOUND
    assert result.state == TransactionState.FAILED
    with pytest.raises(NotFoundException):
        result.raise_for_error()


def test_full_class_raises_conflict_on_request(db, booking_service):
    class_session = create_class_session(db, capacity=2)
    create_confirmed_bookings(db, class_session, 2)

    result = booking_service.create_booking(class_session.id, "CLIENT_C")

    with pytest.raises(ConflictException) as exc_info:
        result.raise_for_error()
    assert exc_info.value.code == "CAPACITY_EXCEEDED"
    assert exc_info.value.details["confirmed_count"] == 2


def test_held_lock_reports_contended(store_settings: Settings, db: Session):
    class_session = create_class_session(db, capacity=5)
    impatient = create_store_engine(
        store_settings.model_copy(update={"sqlite_busy_timeout_seconds": 0.2}),
        pool_name="impatient",
    )
    other = sessionmaker(bind=impatient, expire_on_commit=False)()
    try:
        lock_class_session(db, class_session.id)

        result = BookingService(other).create_booking(class_session.id, "CLIENT_A")

        assert result.error == OperationError.CONTENDED
        assert result.retryable
        assert result.to_payload()["retryable"] is True
        with pytest.raises(LockContentionException):
            result.raise_for_error()
    finally:
        db.rollback()
        other.close()
        impatient.dispose()

    assert confirmed_count(db, class_session.id) == 0


def test_payload_never_contains_driver_detail(db, booking_service):
    class_session = create_class_session(db, capacity=1)
    create_confirmed_bookings(db, class_session, 1)

    payload = booking_service.create_booking(class_session.id, "CLIENT_B").to_payload()

    assert payload == {
        "success": False,
        "state": "REJECTED",
        "error_code": "CAPACITY_EXCEEDED",
        "error_message": "This class is full",
        "retryable": False,
        "confirmed_count": 1,
        "capacity": 1,
    }


def test_operations_are_measured(db, booking_service):
    class_session = create_class_session(db, capacity=1)

    booking_service.create_booking(class_session.id, "CLIENT_A")

    metrics = booking_service.get_metrics()
    assert metrics["create_booking"]["count"] >= 1
