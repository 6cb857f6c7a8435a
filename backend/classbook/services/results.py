"""
Typed outcomes of the booking and swap orchestrators.

Validation conflicts, contention and infrastructure failures are all
returned as values; a caller that prefers exceptions can call
``raise_for_error()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.enums import ConflictKind, OperationError, TransactionState
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    DomainException,
    LockContentionException,
    NotFoundException,
    ScheduleConflictException,
    ServiceException,
)
from ..core.resource_lock import is_contention_error
from ..models.booking import Booking
from ..models.class_session import ClassSession
from ..models.swap_request import ClassSwapRequest
from ..models.waitlist_entry import WaitlistEntry
from ..schemas.conflict import ConflictResult

GENERIC_FAILURE_MESSAGE = "Something went wrong, please try again later"
CONTENDED_MESSAGE = "This class is being updated by someone else, please retry"


def _error_to_exception(
    error: OperationError, message: Optional[str], details: Dict[str, Any]
) -> DomainException:
    if error == OperationError.NOT_FOUND:
        return NotFoundException(message or "Not found", code=error.value, details=details)
    if error == OperationError.CONTENDED:
        return LockContentionException(message, details=details)
    if error in (OperationError.SCHEDULE_CONFLICT, OperationError.BLOCKED_TIME):
        return ScheduleConflictException(message, code=error.value, details=details)
    if error in (
        OperationError.CAPACITY_EXCEEDED,
        OperationError.ALREADY_BOOKED,
        OperationError.DUPLICATE_REQUEST,
        OperationError.ALREADY_WAITLISTED,
    ):
        return ConflictException(message or error.value, code=error.value, details=details)
    if error in (OperationError.INVALID_REQUEST, OperationError.SPOTS_AVAILABLE):
        return BusinessRuleException(message or error.value, code=error.value, details=details)
    return ServiceException(GENERIC_FAILURE_MESSAGE, code=error.value)


@dataclass(frozen=True)
class BookingResult:
    ok: bool
    state: TransactionState
    booking: Optional[Booking] = None
    error: Optional[OperationError] = None
    message: Optional[str] = None
    confirmed_count: Optional[int] = None
    capacity: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.error == OperationError.CONTENDED

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.ok, "state": self.state.value}
        if self.booking is not None:
            payload.update(
                {
                    "booking_id": self.booking.id,
                    "class_session_id": self.booking.class_session_id,
                    "status": self.booking.status,
                }
            )
        if self.error is not None:
            payload["error_code"] = self.error.value
            payload["error_message"] = self.message
            payload["retryable"] = self.retryable
        if self.confirmed_count is not None:
            payload["confirmed_count"] = self.confirmed_count
            payload["capacity"] = self.capacity
        return payload

    def raise_for_error(self) -> None:
        if self.ok or self.error is None:
            return
        details = {"confirmed_count": self.confirmed_count, "capacity": self.capacity}
        raise _error_to_exception(self.error, self.message, details)


@dataclass(frozen=True)
class SwapResult:
    ok: bool
    state: TransactionState
    class_session: Optional[ClassSession] = None
    error: Optional[OperationError] = None
    message: Optional[str] = None
    conflict: ConflictResult = field(default_factory=ConflictResult)

    @property
    def retryable(self) -> bool:
        return self.error == OperationError.CONTENDED

    @classmethod
    def from_conflict(cls, conflict: ConflictResult) -> "SwapResult":
        error = (
            OperationError.BLOCKED_TIME
            if conflict.kind == ConflictKind.BLOCKED_TIME
            else OperationError.SCHEDULE_CONFLICT
        )
        return cls(
            ok=False,
            state=TransactionState.CONFLICT,
            error=error,
            message=conflict.message,
            conflict=conflict,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.ok, "state": self.state.value}
        if self.class_session is not None:
            payload["class_session_id"] = self.class_session.id
            payload["teacher_id"] = self.class_session.teacher_id
        if self.error is not None:
            payload["error_code"] = self.error.value
            payload["error_message"] = self.message
            payload["retryable"] = self.retryable
        if self.conflict.has_conflict:
            payload["conflict"] = self.conflict.to_payload()
        return payload

    def raise_for_error(self) -> None:
        if self.ok or self.error is None:
            return
        raise _error_to_exception(self.error, self.message, self.conflict.to_payload())


@dataclass(frozen=True)
class SwapRequestResult:
    ok: bool
    state: TransactionState
    swap_request: Optional[ClassSwapRequest] = None
    mode: Optional[str] = None  # PENDING_APPROVAL | AUTO_APPROVED
    error: Optional[OperationError] = None
    message: Optional[str] = None
    conflict: ConflictResult = field(default_factory=ConflictResult)

    @classmethod
    def from_swap(cls, swap: SwapResult) -> "SwapRequestResult":
        return cls(
            ok=False,
            state=swap.state,
            error=swap.error,
            message=swap.message,
            conflict=swap.conflict,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.ok, "state": self.state.value}
        if self.mode:
            payload["mode"] = self.mode
        if self.swap_request is not None:
            payload["request_id"] = self.swap_request.id
            payload["status"] = self.swap_request.status
        if self.error is not None:
            payload["error_code"] = self.error.value
            payload["error_message"] = self.message
        if self.conflict.has_conflict:
            payload["conflict"] = self.conflict.to_payload()
        return payload

    def raise_for_error(self) -> None:
        if self.ok or self.error is None:
            return
        raise _error_to_exception(self.error, self.message, self.conflict.to_payload())


@dataclass(frozen=True)
class WaitlistResult:
    ok: bool
    state: TransactionState
    entry: Optional[WaitlistEntry] = None
    error: Optional[OperationError] = None
    message: Optional[str] = None
    position: Optional[int] = None
    spots_left: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.error == OperationError.CONTENDED

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.ok, "state": self.state.value}
        if self.entry is not None:
            payload["waitlist_id"] = self.entry.id
            payload["status"] = self.entry.status
        if self.position is not None:
            payload["position"] = self.position
        if self.spots_left is not None:
            payload["spots_left"] = self.spots_left
        if self.message is not None:
            payload["message" if self.ok else "error_message"] = self.message
        if self.error is not None:
            payload["error_code"] = self.error.value
            payload["retryable"] = self.retryable
        return payload

    def raise_for_error(self) -> None:
        if self.ok or self.error is None:
            return
        details = {"position": self.position, "spots_left": self.spots_left}
        raise _error_to_exception(self.error, self.message, details)


def error_for_exception(exc: BaseException) -> OperationError:
    """Map a failure raised inside an orchestrated transaction to its error code."""
    if isinstance(exc, NotFoundException):
        return OperationError.NOT_FOUND
    if is_contention_error(exc):
        return OperationError.CONTENDED
    return OperationError.INFRA_ERROR
