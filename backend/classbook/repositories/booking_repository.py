"""
Booking repository.

Capacity decisions must only be made from ``count_confirmed`` executed after
the session lock is held; counts read anywhere else are advisory.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def count_confirmed(self, class_session_id: str) -> int:
        query = self.db.query(func.count(Booking.id)).filter(
            Booking.class_session_id == class_session_id,
            Booking.status == BookingStatus.CONFIRMED.value,
        )
        return int(self._execute_scalar(query) or 0)

    def find_confirmed_for_client(self, class_session_id: str, client_id: str) -> Optional[Booking]:
        rows = self._execute_query(
            self.db.query(Booking)
            .filter(
                Booking.class_session_id == class_session_id,
                Booking.client_id == client_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .limit(1)
        )
        return rows[0] if rows else None

    def create_confirmed(self, *, studio_id: str, class_session_id: str, client_id: str) -> Booking:
        return self.create(
            studio_id=studio_id,
            class_session_id=class_session_id,
            client_id=client_id,
            status=BookingStatus.CONFIRMED.value,
        )

    def mark_cancelled(self, booking: Booking, cancelled_at: datetime) -> Booking:
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = cancelled_at
        self.flush()
        return booking
