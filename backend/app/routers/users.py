import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.config import settings
from app.models.actor import AuthenticatedActor
from app.models.moderation import RestoreRequest, SoftDeleteRequest
from app.models.user import PhoneUpdate, RoleUpdate
from app.routers.audit_common import render_audit_listing
from app.services.audit_query_service import list_audit_actions
from app.services.auth_service import get_admin_actor, get_current_actor
from app.services.moderation_service import list_active, restore, soft_delete
from app.services.subject_registry import USER
from app.services.user_service import change_phone, change_role

logger = logging.getLogger("wathii.users")
router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.PUBLIC_PAGE_SIZE_DEFAULT, alias="pageSize", ge=1, le=settings.PUBLIC_PAGE_SIZE_MAX),
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    """Active users (admin only)."""
    result = await list_active(USER, page=page, page_size=page_size, projection={"hashed_password": 0})
    result["users"] = result.pop("items")
    return result


@router.get("/audit")
async def user_audit(
    action: Optional[str] = Query(None),
    by_name: Optional[str] = Query(None, alias="byName"),
    user_id: Optional[str] = Query(None, alias="userId"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    sort: str = Query("desc"),
    export: Optional[str] = Query(None),
    export_all: bool = Query(False, alias="exportAll"),
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    """User audit trail as a JSON page or, with export=csv, a CSV download."""
    return await render_audit_listing(
        USER,
        action=action,
        by_name=by_name,
        subject_id=user_id,
        start=start,
        end=end,
        page=page,
        page_size=page_size,
        sort=sort,
        export=export,
        export_all=export_all,
    )


@router.get("/audit/actions")
async def user_audit_actions(admin: AuthenticatedActor = Depends(get_admin_actor)):
    return await list_audit_actions(USER)


@router.patch("/me/phone")
async def update_own_phone(body: PhoneUpdate, actor: AuthenticatedActor = Depends(get_current_actor)):
    user = await change_phone(actor, body.phone, note=body.note)
    return {"user": user}


@router.patch("/{user_id}/role")
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    user = await change_role(user_id, admin, role=body.role, job_title=body.job_title, note=body.note)
    return {"user": user}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    body: Optional[SoftDeleteRequest] = None,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account.",
        )
    body = body or SoftDeleteRequest()
    return await soft_delete(USER, user_id, admin, reason=body.reason, note=body.note)


@router.post("/{user_id}/restore")
async def restore_user(
    user_id: str,
    body: Optional[RestoreRequest] = None,
    admin: AuthenticatedActor = Depends(get_admin_actor),
):
    body = body or RestoreRequest()
    user = await restore(USER, user_id, admin, note=body.note)
    return {"user": user}
