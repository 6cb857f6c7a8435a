"""HTTP mapping of domain exceptions."""

from fastapi import HTTPException

from classbook.core.exceptions import (
    CapacityExceededException,
    LockContentionException,
    NotFoundException,
    ScheduleConflictException,
    ServiceException,
)


def test_not_found_maps_to_404():
    http_exc = NotFoundException("Class session not found", code="NOT_FOUND").to_http_exception()

    assert isinstance(http_exc, HTTPException)
    assert http_exc.status_code == 404
    assert http_exc.detail["code"] == "NOT_FOUND"


def test_capacity_exceeded_carries_counts():
    exc = CapacityExceededException("S1", capacity=2, confirmed=2)
    http_exc = exc.to_http_exception()

    assert http_exc.status_code == 409
    assert http_exc.detail["code"] == "CAPACITY_EXCEEDED"
    assert http_exc.detail["details"]["confirmed_bookings"] == 2


def test_schedule_conflict_uses_given_code():
    exc = ScheduleConflictException("Blocked", code="BLOCKED_TIME")

    assert exc.to_http_exception().detail["code"] == "BLOCKED_TIME"


def test_lock_contention_is_retryable_503():
    exc = LockContentionException()

    assert exc.retryable is True
    assert exc.code == "CONTENDED"
    assert exc.to_http_exception().status_code == 503


def test_service_exception_hides_driver_detail():
    exc = ServiceException("psycopg2.OperationalError: server closed the connection")
    detail = exc.to_http_exception().detail

    assert "psycopg2" not in detail["message"]
    assert detail["details"] == {}
