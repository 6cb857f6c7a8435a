# backend/classbook/schemas/updates.py
"""
Optional-field update records.

Merge semantics are driven by ``model_fields_set``:

* field absent      -> attribute left unchanged
* field set to None -> attribute cleared
* field set         -> attribute overwritten
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class PartialUpdate(BaseModel):
    """Base for partial updates; never applies defaults for absent fields."""

    model_config = ConfigDict(extra="forbid")

    non_nullable_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_clearing_required(self) -> "PartialUpdate":
        for name in self.non_nullable_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> Dict[str, Any]:
        """Only the explicitly provided fields, including explicit ``None``."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def apply_to(self, entity: Any) -> Dict[str, Any]:
        """Apply the provided fields to ``entity`` and return what changed."""
        applied: Dict[str, Any] = {}
        for name, value in self.changes().items():
            if getattr(entity, name) != value:
                setattr(entity, name, value)
                applied[name] = value
        return applied


class ClassSessionUpdate(PartialUpdate):
    """Mutable scheduling fields of a class session."""

    non_nullable_fields = ("teacher_id",)

    teacher_id: Optional[str] = None


class SwapRequestResolution(PartialUpdate):
    """Fields written when a swap request is approved or declined."""

    non_nullable_fields = ("status",)

    status: Optional[str] = None
    admin_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by_id: Optional[str] = None
