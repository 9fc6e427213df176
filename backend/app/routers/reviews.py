import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.config import settings
from app.models.actor import AuthenticatedActor
from app.models.moderation import RestoreRequest, SoftDeleteRequest
from app.models.review import ReviewCreate
from app.routers.audit_common import render_audit_listing
from app.services.audit_query_service import list_audit_actions
from app.services.auth_service import get_admin_actor, get_current_actor, get_moderator_actor
from app.services.moderation_service import list_active, restore, soft_delete
from app.services.subject_registry import REVIEW
from app.utils import utcnow

logger = logging.getLogger("wathii.reviews")
router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.get("")
async def list_reviews(
    product_id: Optional[str] = Query(None, alias="productId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.PUBLIC_PAGE_SIZE_DEFAULT, alias="pageSize", ge=1, le=settings.PUBLIC_PAGE_SIZE_MAX),
):
    """Active reviews, newest first, one page at a time."""
    result = await list_active(
        REVIEW, {"product_id": product_id} if product_id else None, page=page, page_size=page_size,
    )
    result["reviews"] = result.pop("items")
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(body: ReviewCreate, actor: AuthenticatedActor = Depends(get_current_actor)):
    now = utcnow()
    doc = {
        "product_id": body.product_id,
        "user_id": actor.id,
        "user_name": actor.name,
        "rating": body.rating,
        "comment": body.comment,
        "created_at": now,
        "updated_at": now,
    }
    result = await REVIEW.subjects().insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Review %s submitted by %s for product %s", result.inserted_id, actor.id, body.product_id)
    return {"review": REVIEW.to_public(doc)}


# --- Audit (declared before /{review_id} routes) ---

@router.get("/audit")
async def review_audit(
    action: Optional[str] = Query(None),
    by_name: Optional[str] = Query(None, alias="byName"),
    review_id: Optional[str] = Query(None, alias="reviewId"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    sort: str = Query("desc"),
    export: Optional[str] = Query(None),
    export_all: bool = Query(False, alias="exportAll"),
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    """Review audit trail as a JSON page or, with export=csv, a CSV download."""
    return await render_audit_listing(
        REVIEW,
        action=action,
        by_name=by_name,
        subject_id=review_id,
        start=start,
        end=end,
        page=page,
        page_size=page_size,
        sort=sort,
        export=export,
        export_all=export_all,
    )


@router.get("/audit/actions")
async def review_audit_actions(admin: AuthenticatedActor = Depends(get_admin_actor)):
    return await list_audit_actions(REVIEW)


# --- Moderation ---

@router.delete("/{review_id}")
async def delete_review(
    review_id: str,
    body: Optional[SoftDeleteRequest] = None,
    actor: AuthenticatedActor = Depends(get_moderator_actor),
):
    body = body or SoftDeleteRequest()
    return await soft_delete(REVIEW, review_id, actor, reason=body.reason, note=body.note)


@router.post("/{review_id}/restore")
async def restore_review(
    review_id: str,
    body: Optional[RestoreRequest] = None,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    body = body or RestoreRequest()
    review = await restore(REVIEW, review_id, admin, note=body.note)
    return {"review": review}
