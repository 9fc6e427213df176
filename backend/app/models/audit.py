from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    DELETED = "deleted"
    RESTORED = "restored"
    VIEWED = "viewed"
    VIEWS_UPDATED = "views_updated"
    PHONE_CHANGED = "phone_changed"
    ROLE_CHANGED = "role_changed"


SortOrder = Literal["asc", "desc"]


class AuditEntry(BaseModel):
    """Immutable audit row for one state-changing action on a subject.

    Insert-only. The only removal path is the retention sweep of old
    "deleted" rows.
    """

    subject_id: str
    action: AuditAction
    by_id: str
    by_name: str
    reason: Optional[str] = None
    note: Optional[str] = None
    new_value: Optional[str] = None  # user audits: phone/role after the change
    timestamp: datetime

    def to_document(self, subject_field: str) -> dict[str, Any]:
        doc: dict[str, Any] = {
            subject_field: self.subject_id,
            "action": self.action.value,
            "by_id": self.by_id,
            "by_name": self.by_name,
            "timestamp": self.timestamp,
        }
        for key in ("reason", "note", "new_value"):
            value = getattr(self, key)
            if value is not None:
                doc[key] = value
        return doc


class AuditQuery(BaseModel):
    """Validated filter, paging and export options for an audit listing."""

    action: Optional[str] = None
    by_name: Optional[str] = None
    subject_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(50, ge=1)
    sort: SortOrder = "desc"
    export_csv: bool = False
    export_all: bool = False
