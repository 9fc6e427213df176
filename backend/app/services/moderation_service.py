"""
backend/app/services/moderation_service.py

Purpose:
    Soft-delete and restore for reviews, news items and users.

    Each operation runs lookup -> mutate -> persist -> audit insert ->
    broadcast in sequence with no transaction. A crash between the subject
    write and the audit insert leaves a soft-deleted subject without its
    audit row; nothing retries or compensates.

Dependencies:
    - app.services.subject_registry
    - app.services.audit_service
    - app.config
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.config import settings
from app.models.actor import AuthenticatedActor
from app.models.audit import AuditAction
from app.models.subject import (
    ACTIVE_FILTER,
    ActiveState,
    DeletedState,
    clean_text,
    clear_deletion_update,
    state_from_document,
)
from app.services.audit_service import record_audit
from app.services.subject_registry import SubjectKind, parse_object_id
from app.utils import utcnow

logger = logging.getLogger("wathii.moderation")


class SubjectNotFound(LookupError):
    """The subject id does not resolve to a document."""

    def __init__(self, kind: SubjectKind, subject_id: str) -> None:
        super().__init__(f"{kind.label} {subject_id} not found")
        self.kind = kind
        self.subject_id = subject_id


class RestoreConflict(Exception):
    """Restore requested for a subject that is not soft-deleted."""

    def __init__(self, kind: SubjectKind, subject_id: str) -> None:
        super().__init__(f"{kind.label} {subject_id} is not deleted")
        self.kind = kind
        self.subject_id = subject_id


async def load_subject(kind: SubjectKind, subject_id: str, *, active_only: bool = False) -> dict[str, Any]:
    """Fetch a subject document or raise SubjectNotFound.

    Malformed ids are treated like unknown ones.
    """
    oid = parse_object_id(subject_id)
    if oid is None:
        raise SubjectNotFound(kind, subject_id)
    doc = await kind.subjects().find_one({"_id": oid})
    if not doc:
        raise SubjectNotFound(kind, subject_id)
    if active_only and isinstance(state_from_document(doc), DeletedState):
        raise SubjectNotFound(kind, subject_id)
    return doc


async def soft_delete(
    kind: SubjectKind,
    subject_id: str,
    actor: AuthenticatedActor,
    *,
    reason: Optional[str] = None,
    note: Optional[str] = None,
) -> dict[str, Any]:
    """Mark a subject deleted and append a "deleted" audit row.

    Deleting an already-deleted subject overwrites the deletion metadata and
    starts a new audit entry.
    """
    doc = await load_subject(kind, subject_id)

    state = DeletedState(
        at=utcnow(),
        by_id=actor.id,
        by_name=actor.name,
        reason=clean_text(reason),
        note=clean_text(note),
    )
    update: dict[str, Any] = {"$set": state.to_document_fields()}
    stale = {field: "" for field in ("deleted_reason", "deleted_note") if field not in update["$set"]}
    if stale:
        update["$unset"] = stale
    await kind.subjects().update_one({"_id": doc["_id"]}, update)

    logger.info(
        "%s %s soft-deleted by %s (%s) reason=%r",
        kind.label, subject_id, actor.id, actor.role, state.reason,
    )
    await record_audit(
        kind,
        subject_id=str(doc["_id"]),
        action=AuditAction.DELETED,
        actor=actor,
        reason=state.reason,
        note=state.note,
    )
    return {"success": True}


def restore_note(note: Optional[str], prev_reason: str) -> str:
    """Audit note for a restore; always carries the discarded deletion reason."""
    trail = f"restored; prevReason: {prev_reason}"
    note = clean_text(note)
    if note:
        return f"{note} ({trail})"
    return trail


async def restore(
    kind: SubjectKind,
    subject_id: str,
    actor: AuthenticatedActor,
    *,
    note: Optional[str] = None,
) -> dict[str, Any]:
    """Clear the deletion fields and append a "restored" audit row.

    Returns the public representation of the now-active subject. For a
    subject that is already active the outcome depends on
    RESTORE_ACTIVE_POLICY: "allow" still records a restore with
    prevReason "none", "reject" raises RestoreConflict.
    """
    doc = await load_subject(kind, subject_id)
    state = state_from_document(doc)

    if isinstance(state, ActiveState):
        if settings.RESTORE_ACTIVE_POLICY == "reject":
            raise RestoreConflict(kind, subject_id)
        logger.warning("%s %s restored while already active", kind.label, subject_id)

    prev_reason = "none"
    if isinstance(state, DeletedState) and state.reason:
        prev_reason = state.reason

    await kind.subjects().update_one({"_id": doc["_id"]}, clear_deletion_update())

    logger.info("%s %s restored by %s (prevReason=%s)", kind.label, subject_id, actor.id, prev_reason)
    await record_audit(
        kind,
        subject_id=str(doc["_id"]),
        action=AuditAction.RESTORED,
        actor=actor,
        note=restore_note(note, prev_reason),
    )

    restored = await kind.subjects().find_one({"_id": doc["_id"]})
    if restored is None:
        restored = {key: value for key, value in doc.items() if not key.startswith("deleted_")}
    return kind.to_public(restored)


async def list_active(
    kind: SubjectKind,
    extra_filter: Optional[dict[str, Any]] = None,
    *,
    page: int = 1,
    page_size: int,
    projection: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """One page of active subjects, newest first, with the total across pages."""
    query: dict[str, Any] = {**(extra_filter or {}), **ACTIVE_FILTER}
    total = await kind.subjects().count_documents(query)
    docs = (
        await kind.subjects()
        .find(query, projection)
        .sort([("created_at", -1), ("_id", -1)])
        .skip((page - 1) * page_size)
        .limit(page_size)
        .to_list(length=page_size)
    )
    return {
        "items": [kind.to_public(doc) for doc in docs],
        "total": total,
        "page": page,
        "pageSize": page_size,
    }
