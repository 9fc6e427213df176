"""Insert-only audit trail for moderation actions on reviews, news and users.

This module exposes NO update operation on the audit collections. Every
written row is also pushed to the realtime channel of its subject kind.
"""

import logging
from typing import Any, Optional

from app.models.audit import AuditAction, AuditEntry
from app.models.actor import AuthenticatedActor
from app.services.subject_registry import SubjectKind
from app.services.websocket_manager import websocket_manager
from app.utils import isoformat_utc, utcnow

logger = logging.getLogger("wathii.audit")


def audit_to_wire(kind: SubjectKind, doc: dict[str, Any]) -> dict[str, Any]:
    """JSON shape of a stored audit row (camelCase, ISO timestamp)."""
    row = {
        "id": str(doc["_id"]),
        kind.wire_key: doc.get(kind.subject_field, ""),
        "action": doc.get("action", ""),
        "byId": doc.get("by_id", ""),
        "byName": doc.get("by_name", ""),
        "reason": doc.get("reason"),
        "note": doc.get("note"),
        "timestamp": isoformat_utc(doc.get("timestamp")),
    }
    if "new_value" in doc:
        row["newValue"] = doc["new_value"]
    return row


async def record_audit(
    kind: SubjectKind,
    *,
    subject_id: str,
    action: AuditAction,
    actor: AuthenticatedActor,
    reason: Optional[str] = None,
    note: Optional[str] = None,
    new_value: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """Append one audit row and broadcast it.

    Returns the wire representation, or None if the insert failed. A failed
    insert is logged and never fails the calling request; the subject
    mutation that preceded it is not rolled back.
    """
    entry = AuditEntry(
        subject_id=str(subject_id),
        action=action,
        by_id=actor.id,
        by_name=actor.name,
        reason=reason,
        note=note,
        new_value=new_value,
        timestamp=utcnow(),
    )
    doc = entry.to_document(kind.subject_field)

    try:
        result = await kind.audits().insert_one(doc)
    except Exception:
        logger.exception(
            "Failed to write %s audit: action=%s subject=%s actor=%s",
            kind.key, entry.action.value, subject_id, actor.id,
        )
        return None

    doc["_id"] = result.inserted_id
    row = audit_to_wire(kind, doc)
    await publish_audit(kind, row)
    return row


async def publish_audit(kind: SubjectKind, row: dict[str, Any]) -> None:
    """Fire-and-forget delivery to connected dashboard clients."""
    try:
        delivered = await websocket_manager.broadcast(channel=kind.channel, data=row)
    except Exception:
        logger.exception("Realtime broadcast failed on %s for audit %s", kind.channel, row.get("id"))
        return
    logger.debug("Audit %s broadcast on %s to %d clients", row.get("id"), kind.channel, delivered)
