import logging
from typing import Any, Optional

from app.models.actor import AuthenticatedActor, Role
from app.models.audit import AuditAction
from app.models.subject import clean_text
from app.services.audit_service import record_audit
from app.services.moderation_service import load_subject
from app.services.subject_registry import USER
from app.utils import utcnow

logger = logging.getLogger("wathii.user_service")


async def change_phone(actor: AuthenticatedActor, phone: str, *, note: Optional[str] = None) -> dict[str, Any]:
    """Set the caller's own phone number and audit the change."""
    user = await load_subject(USER, actor.id, active_only=True)
    previous = user.get("phone") or ""

    await USER.subjects().update_one(
        {"_id": user["_id"]},
        {"$set": {"phone": phone, "updated_at": utcnow()}},
    )
    logger.info("User %s changed phone", actor.id)
    await record_audit(
        USER,
        subject_id=str(user["_id"]),
        action=AuditAction.PHONE_CHANGED,
        actor=actor,
        reason=f"previous: {previous}" if previous else None,
        note=clean_text(note),
        new_value=phone,
    )

    user["phone"] = phone
    return USER.to_public(user)


async def change_role(
    user_id: str,
    actor: AuthenticatedActor,
    *,
    role: Role,
    job_title: Optional[str] = None,
    note: Optional[str] = None,
) -> dict[str, Any]:
    """Admin role change for an active user, audited with the new role."""
    user = await load_subject(USER, user_id, active_only=True)
    previous = user.get("role", "user")

    fields: dict[str, Any] = {"role": role, "updated_at": utcnow()}
    if job_title is not None:
        fields["job_title"] = clean_text(job_title)
    await USER.subjects().update_one({"_id": user["_id"]}, {"$set": fields})

    logger.info("Admin %s changed role of %s: %s -> %s", actor.id, user_id, previous, role)
    await record_audit(
        USER,
        subject_id=str(user["_id"]),
        action=AuditAction.ROLE_CHANGED,
        actor=actor,
        reason=f"previous: {previous}",
        note=clean_text(note),
        new_value=role,
    )

    user.update(fields)
    return USER.to_public(user)
