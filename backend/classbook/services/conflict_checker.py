# backend/classbook/services/conflict_checker.py
"""
Conflict Checker Service for the booking core.

Decides whether assigning a teacher to a time window collides with:
- another class of that teacher in the same studio, or
- a blocked/unavailable window of that teacher (any studio).

At most one conflict is reported: class conflicts take precedence over
blocked time, and within each kind the earliest-starting record wins.
"""

from datetime import datetime
import logging
from typing import Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from ..core.timezone_utils import ensure_utc
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..schemas.conflict import ConflictResult
from .base import BaseService

logger = logging.getLogger(__name__)

R = TypeVar("R")


def windows_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """
    Half-open interval intersection: ``a_start < b_end and a_end > b_start``.

    Touching windows do not overlap. Two identical zero-duration windows do
    not overlap either.
    """
    return a_start < b_end and a_end > b_start


def _earliest(candidates: Sequence[R]) -> Optional[R]:
    # Ordering is part of the contract; never rely on the store's default order
    if not candidates:
        return None
    return min(candidates, key=lambda row: (row.start_time, row.id))


class ConflictChecker(BaseService):
    """
    Service for checking teacher assignment conflicts.

    Reads run on the service's session. When the check gates a write, pass
    the session of that write's transaction and call this only after the
    class session lock is held, so check and write see the same state.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("check_assignment_conflict")
    def check_assignment_conflict(
        self,
        teacher_id: str,
        studio_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check whether ``teacher_id`` can take the window ``[start_time, end_time)``.

        Args:
            teacher_id: Teacher being assigned
            studio_id: Studio of the assignment (scopes the class check only)
            start_time: Window start
            end_time: Window end
            exclude_session_id: Session being moved; never conflicts with itself

        Returns:
            ConflictResult with kind NONE, SCHEDULE_CONFLICT or BLOCKED_TIME
        """
        start = ensure_utc(start_time)
        end = ensure_utc(end_time)

        sessions = self.repository.get_overlapping_sessions(
            teacher_id, studio_id, start, end, exclude_session_id
        )
        colliding_session = _earliest(
            [s for s in sessions if windows_overlap(s.start_time, s.end_time, start, end)]
        )
        if colliding_session is not None:
            self.logger.info(
                "Schedule conflict for teacher %s: class %s",
                teacher_id,
                colliding_session.id,
                extra={"teacher_id": teacher_id, "conflict_count": len(sessions)},
            )
            return ConflictResult.from_session(colliding_session)

        blocked = self.repository.get_overlapping_blocked_times(teacher_id, start, end)
        colliding_block = _earliest(
            [b for b in blocked if windows_overlap(b.start_time, b.end_time, start, end)]
        )
        if colliding_block is not None:
            self.logger.info(
                "Blocked time conflict for teacher %s: %s",
                teacher_id,
                colliding_block.id,
                extra={"teacher_id": teacher_id, "conflict_count": len(blocked)},
            )
            return ConflictResult.from_blocked_time(colliding_block)

        return ConflictResult.none()
