"""Repository for class swap requests."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import SwapRequestStatus
from ..models.swap_request import ClassSwapRequest
from ..schemas.updates import SwapRequestResolution
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SwapRequestRepository(BaseRepository[ClassSwapRequest]):
    def __init__(self, db: Session):
        super().__init__(db, ClassSwapRequest)

    def get_for_studio(self, request_id: str, studio_id: str) -> Optional[ClassSwapRequest]:
        rows = self._execute_query(
            self.db.query(ClassSwapRequest)
            .filter(ClassSwapRequest.id == request_id, ClassSwapRequest.studio_id == studio_id)
            .populate_existing()
            .limit(1)
        )
        return rows[0] if rows else None

    def find_pending(self, class_session_id: str, from_teacher_id: str) -> Optional[ClassSwapRequest]:
        rows = self._execute_query(
            self.db.query(ClassSwapRequest)
            .filter(
                ClassSwapRequest.class_session_id == class_session_id,
                ClassSwapRequest.from_teacher_id == from_teacher_id,
                ClassSwapRequest.status == SwapRequestStatus.PENDING.value,
            )
            .limit(1)
        )
        return rows[0] if rows else None

    def list_for_studio(
        self, studio_id: str, status: SwapRequestStatus = SwapRequestStatus.PENDING, limit: int = 100
    ) -> List[ClassSwapRequest]:
        return self._execute_query(
            self.db.query(ClassSwapRequest)
            .filter(
                ClassSwapRequest.studio_id == studio_id,
                ClassSwapRequest.status == status.value,
            )
            .order_by(ClassSwapRequest.created_at.desc(), ClassSwapRequest.id.desc())
            .limit(limit)
        )

    def resolve(
        self, swap_request: ClassSwapRequest, resolution: SwapRequestResolution
    ) -> ClassSwapRequest:
        resolution.apply_to(swap_request)
        self.flush()
        return swap_request
