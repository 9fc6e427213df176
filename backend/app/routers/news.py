import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.config import settings
from app.models.actor import AuthenticatedActor
from app.models.moderation import RestoreRequest, SoftDeleteRequest
from app.models.news import NewsViewsUpdate
from app.routers.audit_common import render_audit_listing
from app.services.audit_query_service import list_audit_actions
from app.services.auth_service import get_admin_actor, get_moderator_actor, get_optional_actor
from app.services.moderation_service import list_active, load_subject, restore, soft_delete
from app.services.news_view_service import record_view, set_view_count, view_statistics
from app.services.subject_registry import NEWS

logger = logging.getLogger("wathii.news")
router = APIRouter(prefix="/api/news", tags=["news"])


@router.get("")
async def list_news(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.PUBLIC_PAGE_SIZE_DEFAULT, alias="pageSize", ge=1, le=settings.PUBLIC_PAGE_SIZE_MAX),
):
    """Active news articles, newest first, one page at a time."""
    result = await list_active(NEWS, page=page, page_size=page_size)
    result["news"] = result.pop("items")
    return result


# --- Audit (declared before /{news_id} routes) ---

@router.get("/audit")
async def news_audit(
    action: Optional[str] = Query(None),
    by_name: Optional[str] = Query(None, alias="byName"),
    news_id: Optional[str] = Query(None, alias="newsId"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    sort: str = Query("desc"),
    export: Optional[str] = Query(None),
    export_all: bool = Query(False, alias="exportAll"),
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    """News audit trail as a JSON page or, with export=csv, a CSV download."""
    return await render_audit_listing(
        NEWS,
        action=action,
        by_name=by_name,
        subject_id=news_id,
        start=start,
        end=end,
        page=page,
        page_size=page_size,
        sort=sort,
        export=export,
        export_all=export_all,
    )


@router.get("/audit/actions")
async def news_audit_actions(admin: AuthenticatedActor = Depends(get_admin_actor)):
    return await list_audit_actions(NEWS)


@router.get("/{news_id}")
async def get_news(news_id: str):
    doc = await load_subject(NEWS, news_id, active_only=True)
    return {"news": NEWS.to_public(doc)}


# --- View tracking ---

@router.post("/{news_id}/view")
async def track_view(
    news_id: str,
    request: Request,
    actor: Optional[AuthenticatedActor] = Depends(get_optional_actor),
):
    """Count a view once per signed-in user, or per client IP for guests."""
    ip_address = request.client.host if request.client else ""
    viewer_key = actor.id if actor else (ip_address or "anonymous")
    return await record_view(
        news_id,
        viewer_key=viewer_key,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent", ""),
    )


@router.get("/{news_id}/views")
async def news_view_stats(news_id: str, admin: AuthenticatedActor = Depends(get_admin_actor)):
    return await view_statistics(news_id, admin)


@router.patch("/{news_id}/views")
async def update_news_views(
    news_id: str,
    body: NewsViewsUpdate,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    return await set_view_count(news_id, admin, views=body.views, note=body.note)


# --- Moderation ---

@router.delete("/{news_id}")
async def delete_news(
    news_id: str,
    body: Optional[SoftDeleteRequest] = None,
    actor: AuthenticatedActor = Depends(get_moderator_actor),
):
    body = body or SoftDeleteRequest()
    return await soft_delete(NEWS, news_id, actor, reason=body.reason, note=body.note)


@router.post("/{news_id}/restore")
async def restore_news(
    news_id: str,
    body: Optional[RestoreRequest] = None,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    body = body or RestoreRequest()
    news = await restore(NEWS, news_id, admin, note=body.note)
    return {"news": news}
