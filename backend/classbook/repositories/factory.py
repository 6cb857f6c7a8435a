"""
Repository Factory for the booking core.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .class_session_repository import ClassSessionRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .swap_request_repository import SwapRequestRepository
    from .waitlist_repository import WaitlistRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_class_session_repository(db: Session) -> "ClassSessionRepository":
        from .class_session_repository import ClassSessionRepository

        return ClassSessionRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking operations."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_swap_request_repository(db: Session) -> "SwapRequestRepository":
        from .swap_request_repository import SwapRequestRepository

        return SwapRequestRepository(db)

    @staticmethod
    def create_waitlist_repository(db: Session) -> "WaitlistRepository":
        from .waitlist_repository import WaitlistRepository

        return WaitlistRepository(db)
