"""ClassSession repository: point reads and teacher reassignment."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.class_session import ClassSession
from ..schemas.updates import ClassSessionUpdate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClassSessionRepository(BaseRepository[ClassSession]):
    def __init__(self, db: Session):
        super().__init__(db, ClassSession)

    def get_for_studio(
        self, session_id: str, studio_id: str, *, refresh: bool = False
    ) -> Optional[ClassSession]:
        session = self.get_by_id(session_id, refresh=refresh)
        if session is None or session.studio_id != studio_id:
            return None
        return session

    def apply_update(self, session: ClassSession, update: ClassSessionUpdate) -> ClassSession:
        changed = update.apply_to(session)
        if changed:
            self.flush()
            self.logger.debug("Updated class session %s: %s", session.id, sorted(changed))
        return session
