# backend/classbook/core/enums.py
"""Enumerations shared by models, schemas and services."""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class SwapRequestStatus(str, Enum):
    """Class swap request lifecycle."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class WaitlistStatus(str, Enum):
    """Waitlist entry lifecycle."""

    WAITING = "WAITING"
    CANCELLED = "CANCELLED"


class ConflictKind(str, Enum):
    NONE = "NONE"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    BLOCKED_TIME = "BLOCKED_TIME"


class ExecutionMode(str, Enum):
    """How independent reads are dispatched."""

    PARALLEL = "PARALLEL"
    SEQUENTIAL = "SEQUENTIAL"


class TransactionState(str, Enum):
    """States walked by the booking and swap orchestrators."""

    INITIATED = "INITIATED"
    LOCKED = "LOCKED"
    VALIDATED = "VALIDATED"  # booking: seat available
    CHECKED = "CHECKED"  # swap: no conflict for the new teacher
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"  # booking: capacity exceeded or duplicate; waitlist: not full
    CONFLICT = "CONFLICT"  # swap: conflict detected
    FAILED = "FAILED"


class OperationError(str, Enum):
    """Typed failure codes returned by orchestrator operations."""

    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    BLOCKED_TIME = "BLOCKED_TIME"
    NOT_FOUND = "NOT_FOUND"
    CONTENDED = "CONTENDED"
    INFRA_ERROR = "INFRA_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    ALREADY_WAITLISTED = "ALREADY_WAITLISTED"
    SPOTS_AVAILABLE = "SPOTS_AVAILABLE"
