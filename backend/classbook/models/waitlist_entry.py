"""
Waitlist entries for full class sessions.

Positions among the WAITING entries of a session are 1..n without gaps. They
are assigned and compacted only while the class session lock is held.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from ..core.enums import WaitlistStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    studio_id = Column(String(26), nullable=False)
    class_session_id = Column(
        String(26), ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False
    )
    client_id = Column(String(26), nullable=False)

    position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WaitlistStatus.WAITING.value)

    created_at = Column(DateTime, server_default=func.now())
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("position >= 1", name="ck_waitlist_entries_position"),
        Index("idx_waitlist_entries_session_status", "class_session_id", "status", "position"),
        Index("idx_waitlist_entries_client", "client_id", "studio_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry {self.id} session={self.class_session_id} "
            f"#{self.position} status={self.status}>"
        )
