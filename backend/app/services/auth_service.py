import logging
import secrets
from datetime import timedelta
from typing import Any, Optional

from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError
from bson import ObjectId
from fastapi import Depends, HTTPException, Request, Response, status
import jwt
from jwt.exceptions import InvalidTokenError as JWTError

from app.config import settings
from app.database import get_db
from app.models.actor import AuthenticatedActor, Role
from app.models.subject import ACTIVE_FILTER
from app.utils import utcnow

logger = logging.getLogger("wathii.auth")
ph = PasswordHasher()

ALGORITHM = "HS256"


def decode_jwt(token: str) -> dict:
    """Decode a JWT, trying the current secret first, then the old one.

    Allows rotating JWT_SECRET without logging everyone out: set the new
    value, keep the previous one in JWT_SECRET_OLD until old tokens expire.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        if settings.JWT_SECRET_OLD:
            return jwt.decode(token, settings.JWT_SECRET_OLD, algorithms=[ALGORITHM])
        raise


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, password)
    except (VerifyMismatchError, VerificationError):
        return False


def create_access_token(user_id: str) -> str:
    expire = utcnow() + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "access",
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def set_auth_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie("access_token", path="/")


def token_from_request(request: Request) -> Optional[str]:
    """Access token from the cookie, falling back to an Authorization bearer."""
    token = request.cookies.get("access_token")
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def actor_from_user(user: dict[str, Any]) -> AuthenticatedActor:
    return AuthenticatedActor(
        id=str(user["_id"]),
        name=str(user.get("name") or user.get("username") or ""),
        role=user.get("role", "user"),
    )


async def resolve_actor(token: str, db) -> Optional[AuthenticatedActor]:
    """Actor for a valid access token of an active user, else None."""
    try:
        payload = decode_jwt(token)
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        return None

    user = await db.users.find_one({"_id": ObjectId(user_id), **ACTIVE_FILTER})
    if not user:
        return None
    return actor_from_user(user)


async def get_current_actor(request: Request, db=Depends(get_db)) -> AuthenticatedActor:
    """FastAPI dependency: the authenticated caller."""
    token = token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated.",
        )

    actor = await resolve_actor(token, db)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session.",
        )
    request.state.actor = actor
    return actor


async def get_optional_actor(request: Request, db=Depends(get_db)) -> Optional[AuthenticatedActor]:
    """FastAPI dependency: the caller if authenticated, else None."""
    token = token_from_request(request)
    if not token:
        return None
    actor = await resolve_actor(token, db)
    request.state.actor = actor
    return actor


def require_roles(*roles: Role):
    """Build a dependency that admits only actors holding one of `roles`."""
    allowed = frozenset(roles)

    async def _dependency(actor: AuthenticatedActor = Depends(get_current_actor)) -> AuthenticatedActor:
        if actor.role not in allowed:
            logger.warning("Actor %s (%s) denied; requires %s", actor.id, actor.role, sorted(allowed))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions.",
            )
        return actor

    return _dependency


get_admin_actor = require_roles("admin")
get_moderator_actor = require_roles("admin", "staff")
