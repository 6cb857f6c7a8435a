"""Class swap requests between teachers."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import SwapRequestStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base


class ClassSwapRequest(Base):
    """A teacher's request to hand one of their classes to another teacher."""

    __tablename__ = "class_swap_requests"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    studio_id = Column(String(26), nullable=False, index=True)
    class_session_id = Column(
        String(26), ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False
    )
    from_teacher_id = Column(String(26), nullable=False)
    to_teacher_id = Column(String(26), nullable=False)

    status = Column(String(20), nullable=False, default=SwapRequestStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    resolved_at = Column(DateTime, nullable=True)
    resolved_by_id = Column(String(26), nullable=True)

    class_session = relationship("ClassSession")

    __table_args__ = (
        Index("idx_class_swap_requests_session_status", "class_session_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassSwapRequest {self.id} {self.from_teacher_id}->{self.to_teacher_id} "
            f"status={self.status}>"
        )
