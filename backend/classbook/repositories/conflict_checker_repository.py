# backend/classbook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the booking core.

Range/overlap reads on class sessions and teacher blocked times. Both use
the half-open overlap test ``existing.start < end AND existing.end > start``
and return rows ordered by start time. Callers that gate a write must run
these reads on the same session, after the resource lock is held.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.class_session import ClassSession
from ..models.teacher_blocked_time import TeacherBlockedTime
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[ClassSession]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        """Initialize with ClassSession model as primary."""
        super().__init__(db, ClassSession)
        self.logger = logging.getLogger(__name__)

    def get_overlapping_sessions(
        self,
        teacher_id: str,
        studio_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[ClassSession]:
        """
        Sessions of ``teacher_id`` in ``studio_id`` that overlap the window.

        Args:
            teacher_id: The teacher to check
            studio_id: Studio scope of the assignment
            start_time: Window start (naive UTC, inclusive)
            end_time: Window end (naive UTC, exclusive)
            exclude_session_id: Optional session to leave out (the one being moved)

        Returns:
            Overlapping sessions ordered by start time
        """
        query = self.db.query(ClassSession).filter(
            ClassSession.studio_id == studio_id,
            ClassSession.teacher_id == teacher_id,
            ClassSession.start_time < end_time,
            ClassSession.end_time > start_time,
        )
        if exclude_session_id:
            query = query.filter(ClassSession.id != exclude_session_id)

        return self._execute_query(query.order_by(ClassSession.start_time, ClassSession.id))

    def get_overlapping_blocked_times(
        self,
        teacher_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> List[TeacherBlockedTime]:
        """Blocked times of ``teacher_id`` overlapping the window, any studio."""
        query = self.db.query(TeacherBlockedTime).filter(
            TeacherBlockedTime.teacher_id == teacher_id,
            TeacherBlockedTime.start_time < end_time,
            TeacherBlockedTime.end_time > start_time,
        )
        return self._execute_query(
            query.order_by(TeacherBlockedTime.start_time, TeacherBlockedTime.id)
        )
