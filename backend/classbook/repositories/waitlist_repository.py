"""
Waitlist repository.

Positions are only assigned or shifted after the class session lock is held;
``last_waiting_position`` read without it is advisory.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import WaitlistStatus
from ..core.exceptions import RepositoryException
from ..models.waitlist_entry import WaitlistEntry
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WaitlistRepository(BaseRepository[WaitlistEntry]):
    def __init__(self, db: Session):
        super().__init__(db, WaitlistEntry)

    def find_waiting_for_client(
        self, class_session_id: str, client_id: str
    ) -> Optional[WaitlistEntry]:
        rows = self._execute_query(
            self.db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.class_session_id == class_session_id,
                WaitlistEntry.client_id == client_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
            .limit(1)
        )
        return rows[0] if rows else None

    def last_waiting_position(self, class_session_id: str) -> int:
        query = self.db.query(func.max(WaitlistEntry.position)).filter(
            WaitlistEntry.class_session_id == class_session_id,
            WaitlistEntry.status == WaitlistStatus.WAITING.value,
        )
        return int(self._execute_scalar(query) or 0)

    def create_waiting(
        self, *, studio_id: str, class_session_id: str, client_id: str, position: int
    ) -> WaitlistEntry:
        return self.create(
            studio_id=studio_id,
            class_session_id=class_session_id,
            client_id=client_id,
            position=position,
            status=WaitlistStatus.WAITING.value,
        )

    def get_for_client(
        self, entry_id: str, client_id: str, studio_id: str
    ) -> Optional[WaitlistEntry]:
        rows = self._execute_query(
            self.db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.id == entry_id,
                WaitlistEntry.client_id == client_id,
                WaitlistEntry.studio_id == studio_id,
            )
            .populate_existing()
            .limit(1)
        )
        return rows[0] if rows else None

    def list_waiting_for_client(self, client_id: str, studio_id: str) -> List[WaitlistEntry]:
        return self._execute_query(
            self.db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.client_id == client_id,
                WaitlistEntry.studio_id == studio_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
            .order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc())
        )

    def mark_cancelled(self, entry: WaitlistEntry, cancelled_at: datetime) -> WaitlistEntry:
        entry.status = WaitlistStatus.CANCELLED.value
        entry.cancelled_at = cancelled_at
        self.flush()
        return entry

    def close_gap(self, class_session_id: str, vacated_position: int) -> int:
        """Move every WAITING entry behind ``vacated_position`` up by one."""
        try:
            return (
                self.db.query(WaitlistEntry)
                .filter(
                    WaitlistEntry.class_session_id == class_session_id,
                    WaitlistEntry.status == WaitlistStatus.WAITING.value,
                    WaitlistEntry.position > vacated_position,
                )
                .update(
                    {WaitlistEntry.position: WaitlistEntry.position - 1},
                    synchronize_session="fetch",
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error compacting waitlist of {class_session_id}: {str(e)}")
            raise RepositoryException(f"Failed to reorder waitlist: {str(e)}") from e
