"""Teacher blocked/unavailable time windows."""

from sqlalchemy import Column, DateTime, Index, String
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class TeacherBlockedTime(Base):
    """
    A window in which a teacher cannot be assigned to any class.

    Blocked times are teacher-global (not scoped to a studio) and may overlap
    each other freely.
    """

    __tablename__ = "teacher_blocked_times"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    teacher_id = Column(String(26), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_teacher_blocked_times_window", "teacher_id", "start_time", "end_time"),
    )

    def __repr__(self) -> str:
        return f"<TeacherBlockedTime {self.teacher_id} {self.start_time}-{self.end_time}>"
