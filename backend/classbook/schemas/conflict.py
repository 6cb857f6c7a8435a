# backend/classbook/schemas/conflict.py
"""Schedule conflict outcome returned by the conflict checker."""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..core.enums import ConflictKind

if TYPE_CHECKING:
    from ..models.class_session import ClassSession
    from ..models.teacher_blocked_time import TeacherBlockedTime


class ConflictResult(BaseModel):
    """
    Tagged conflict outcome.

    ``kind`` is NONE, SCHEDULE_CONFLICT (``class_session_id`` and the class
    details are set) or BLOCKED_TIME (``blocked_time_id`` and ``reason`` are
    set). The window fields describe the colliding record.
    """

    model_config = ConfigDict(frozen=True)

    kind: ConflictKind = ConflictKind.NONE
    message: Optional[str] = None

    class_session_id: Optional[str] = None
    class_type_name: Optional[str] = None
    location_name: Optional[str] = None

    blocked_time_id: Optional[str] = None
    reason: Optional[str] = None

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def has_conflict(self) -> bool:
        return self.kind != ConflictKind.NONE

    @classmethod
    def none(cls) -> "ConflictResult":
        return cls()

    @classmethod
    def from_session(cls, session: "ClassSession") -> "ConflictResult":
        return cls(
            kind=ConflictKind.SCHEDULE_CONFLICT,
            message=(
                f"Target teacher already has {session.class_type_name} at "
                f"{session.location_name} in this time slot."
            ),
            class_session_id=session.id,
            class_type_name=session.class_type_name,
            location_name=session.location_name,
            start_time=session.start_time,
            end_time=session.end_time,
        )

    @classmethod
    def from_blocked_time(cls, blocked: "TeacherBlockedTime") -> "ConflictResult":
        return cls(
            kind=ConflictKind.BLOCKED_TIME,
            message="Target teacher is blocked/unavailable in this time slot.",
            blocked_time_id=blocked.id,
            reason=blocked.reason,
            start_time=blocked.start_time,
            end_time=blocked.end_time,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
