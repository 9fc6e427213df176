import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.database import get_db
from app.models.actor import AuthenticatedActor
from app.models.subject import ACTIVE_FILTER
from app.models.user import UserLogin, user_to_public
from app.services.auth_service import (
    clear_auth_cookie,
    create_access_token,
    get_current_actor,
    set_auth_cookie,
    verify_password,
)
from app.services.moderation_service import load_subject
from app.services.subject_registry import USER

logger = logging.getLogger("wathii.auth")
router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(body: UserLogin, response: Response, db=Depends(get_db)):
    """Login with email and password. Soft-deleted accounts cannot log in."""
    user = await db.users.find_one({"email": body.email.lower(), **ACTIVE_FILTER})
    if not user or not verify_password(body.password, user.get("hashed_password", "")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )

    user_id = str(user["_id"])
    set_auth_cookie(response, create_access_token(user_id))
    logger.info("User logged in: %s", user_id)
    return {"user": user_to_public(user)}


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return {"message": "Logged out successfully."}


@router.get("/me")
async def me(actor: AuthenticatedActor = Depends(get_current_actor)):
    user = await load_subject(USER, actor.id, active_only=True)
    return {"user": user_to_public(user)}
