"""View counting for news articles and the admin-side audit of view data."""

import logging
from typing import Any, Optional

from pymongo.errors import DuplicateKeyError

import app.database as _db
from app.models.actor import AuthenticatedActor
from app.models.audit import AuditAction
from app.models.subject import clean_text
from app.services.audit_service import record_audit
from app.services.moderation_service import load_subject
from app.services.subject_registry import NEWS
from app.utils import isoformat_utc, utcnow

logger = logging.getLogger("wathii.news_views")

VIEW_HISTORY_LIMIT = 50


async def record_view(
    news_id: str,
    *,
    viewer_key: str,
    ip_address: str = "",
    user_agent: str = "",
) -> dict[str, Any]:
    """Count one view per viewer (actor id or client IP) of an active article."""
    news = await load_subject(NEWS, news_id, active_only=True)
    news_key = str(news["_id"])

    or_clauses: list[dict[str, Any]] = [{"viewer_key": viewer_key}]
    if ip_address:
        or_clauses.append({"ip_address": ip_address})
    existing = await _db.db.news_views.find_one({"news_id": news_key, "$or": or_clauses})

    is_new = False
    if not existing:
        try:
            await _db.db.news_views.insert_one({
                "news_id": news_key,
                "viewer_key": viewer_key,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "viewed_at": utcnow(),
            })
            is_new = True
        except DuplicateKeyError:
            # Concurrent first view from the same viewer; already counted.
            is_new = False

    if is_new:
        await NEWS.subjects().update_one({"_id": news["_id"]}, {"$inc": {"views": 1}})

    refreshed = await NEWS.subjects().find_one({"_id": news["_id"]}, {"views": 1})
    views = int((refreshed or news).get("views") or 0)
    return {"success": True, "views": views, "isNewView": is_new}


async def view_statistics(news_id: str, actor: AuthenticatedActor) -> dict[str, Any]:
    """View totals and recent history. Inspecting them is itself audited."""
    news = await load_subject(NEWS, news_id)
    news_key = str(news["_id"])

    unique_viewers = await _db.db.news_views.distinct("viewer_key", {"news_id": news_key})
    history = (
        await _db.db.news_views.find({"news_id": news_key})
        .sort("viewed_at", -1)
        .limit(VIEW_HISTORY_LIMIT)
        .to_list(length=VIEW_HISTORY_LIMIT)
    )

    await record_audit(NEWS, subject_id=news_key, action=AuditAction.VIEWED, actor=actor)

    return {
        "success": True,
        "totalViews": int(news.get("views") or 0),
        "uniqueViewers": len(unique_viewers),
        "viewHistory": [
            {
                "viewerKey": entry.get("viewer_key", ""),
                "ipAddress": entry.get("ip_address", ""),
                "userAgent": entry.get("user_agent", ""),
                "viewedAt": isoformat_utc(entry.get("viewed_at")),
            }
            for entry in history
        ],
    }


async def set_view_count(
    news_id: str,
    actor: AuthenticatedActor,
    *,
    views: int,
    note: Optional[str] = None,
) -> dict[str, Any]:
    """Overwrite the view counter; the audit note records old -> new."""
    news = await load_subject(NEWS, news_id)
    old_views = int(news.get("views") or 0)

    await NEWS.subjects().update_one(
        {"_id": news["_id"]},
        {"$set": {"views": int(views), "updated_at": utcnow()}},
    )

    change = f"{old_views} -> {int(views)}"
    note = clean_text(note)
    logger.info("News %s views set by %s: %s", news_id, actor.id, change)
    await record_audit(
        NEWS,
        subject_id=str(news["_id"]),
        action=AuditAction.VIEWS_UPDATED,
        actor=actor,
        note=f"{change} ({note})" if note else change,
    )
    return {"success": True, "views": int(views)}
