# backend/classbook/models/booking.py
"""
Booking model.

A booking is one client's seat in one class session. It is created CONFIRMED
by the booking orchestrator after a capacity check made under the session
lock, and only ever moves to CANCELLED afterwards.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import BookingStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    studio_id = Column(String(26), nullable=False)
    class_session_id = Column(
        String(26), ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False
    )
    client_id = Column(String(26), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    created_at = Column(DateTime, server_default=func.now())
    cancelled_at = Column(DateTime, nullable=True)

    class_session = relationship("ClassSession", back_populates="bookings")

    __table_args__ = (
        Index("idx_bookings_session_status", "class_session_id", "status"),
        Index("idx_bookings_client_session", "client_id", "class_session_id"),
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    def __repr__(self) -> str:
        return f"<Booking {self.id} session={self.class_session_id} status={self.status}>"
