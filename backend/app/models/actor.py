"""
backend/app/models/actor.py

Purpose:
    Explicit identity of the authenticated caller. Handlers receive an
    AuthenticatedActor from the auth dependencies instead of reading
    request-scoped session state.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["admin", "staff", "user"]

MODERATOR_ROLES: tuple[Role, ...] = ("admin", "staff")


class AuthenticatedActor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: Role = "user"

    @property
    def is_moderator(self) -> bool:
        return self.role in MODERATOR_ROLES
