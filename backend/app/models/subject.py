"""
backend/app/models/subject.py

Purpose:
    Deletion state of a moderatable subject (review, news item, user).

    Documents keep the flat deleted_* sentinel fields so existing queries and
    indexes stay valid, but code above the persistence layer only sees the
    explicit variant: ActiveState or DeletedState.

Dependencies:
    - pydantic
    - app.utils
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.utils import ensure_utc

DELETION_FIELDS = (
    "deleted_at",
    "deleted_by_id",
    "deleted_by_name",
    "deleted_reason",
    "deleted_note",
)

# The single definition of "active": no deleted_at on the document.
ACTIVE_FILTER: dict[str, Any] = {"deleted_at": {"$exists": False}}


class ActiveState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["active"] = "active"


class DeletedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["deleted"] = "deleted"
    at: Optional[datetime] = None  # null on legacy documents
    by_id: str
    by_name: str
    reason: Optional[str] = None
    note: Optional[str] = None

    def to_document_fields(self) -> dict[str, Any]:
        """Sentinel fields to $set on the subject document."""
        fields: dict[str, Any] = {
            "deleted_at": self.at,
            "deleted_by_id": self.by_id,
            "deleted_by_name": self.by_name,
        }
        # Absent rather than null, so a later $unset leaves no residue.
        if self.reason is not None:
            fields["deleted_reason"] = self.reason
        if self.note is not None:
            fields["deleted_note"] = self.note
        return fields


SubjectState = Annotated[Union[ActiveState, DeletedState], Field(discriminator="status")]


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank collapses to None."""
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def state_from_document(doc: dict[str, Any]) -> SubjectState:
    # Presence of the key is what counts; same rule as ACTIVE_FILTER.
    if "deleted_at" not in doc:
        return ActiveState()
    deleted_at = doc["deleted_at"]
    return DeletedState(
        at=ensure_utc(deleted_at) if deleted_at is not None else None,
        by_id=str(doc.get("deleted_by_id") or ""),
        by_name=str(doc.get("deleted_by_name") or ""),
        reason=doc.get("deleted_reason"),
        note=doc.get("deleted_note"),
    )


def clear_deletion_update() -> dict[str, Any]:
    """Update document that returns a subject to ActiveState."""
    return {"$unset": {field: "" for field in DELETION_FIELDS}}
