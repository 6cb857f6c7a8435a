# backend/classbook/models/class_session.py
"""
Class session model.

A class session is the capacity-limited, time-bounded resource that clients
book into. Exactly one teacher is assigned to it at a time.

The number of confirmed bookings is deliberately not stored here. It is
recomputed from the bookings table while the session row is locked, so there
is no counter that can drift from the rows it summarizes.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class ClassSession(Base):
    """A scheduled class with a fixed number of seats."""

    __tablename__ = "class_sessions"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    studio_id = Column(String(26), nullable=False, index=True)
    teacher_id = Column(String(26), nullable=False)

    # Descriptive context used in conflict messages
    class_type_name = Column(String(120), nullable=False)
    location_name = Column(String(120), nullable=False)

    # Half-open window [start_time, end_time), naive UTC
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    capacity = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    bookings = relationship("Booking", back_populates="class_session", lazy="raise")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_class_sessions_window"),
        CheckConstraint("capacity >= 0", name="ck_class_sessions_capacity"),
        Index(
            "idx_class_sessions_teacher_window",
            "studio_id",
            "teacher_id",
            "start_time",
            "end_time",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassSession {self.id} {self.class_type_name} "
            f"{self.start_time}-{self.end_time} teacher={self.teacher_id}>"
        )
