# backend/classbook/core/exceptions.py
"""
Domain-specific exceptions for the booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Expected validation conflicts are normally returned as typed results by
the orchestrators; the exceptions below exist for callers that prefer to
raise (see ``BookingResult.raise_for_error``) and for the lower layers.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        # Never echo driver detail to end users
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": {},
            },
        )


# Specific business exceptions


class CapacityExceededException(ConflictException):
    """Raised when a class session has no seats left."""

    def __init__(self, session_id: str, capacity: int, confirmed: int):
        super().__init__(
            message="This class is full",
            code="CAPACITY_EXCEEDED",
            details={
                "class_session_id": session_id,
                "capacity": capacity,
                "confirmed_bookings": confirmed,
            },
        )


class ScheduleConflictException(ConflictException):
    """Raised when a teacher assignment collides with a class or blocked time."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "SCHEDULE_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The teacher is not available in this time slot",
            code=code,
            details=details or {},
        )


class LockContentionException(DomainException):
    """
    Raised when a lock could not be acquired in time, or the store aborted
    the transaction to break a deadlock.

    Retryable: the caller decides whether and when to try again.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The resource is busy, please retry",
            code="CONTENDED",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
