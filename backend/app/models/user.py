import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.actor import Role

_PHONE_RE = re.compile(r"^\+?[0-9][0-9 \-]{5,19}$")


class UserLogin(BaseModel):
    """Request body for login."""
    email: EmailStr
    password: str


class RoleUpdate(BaseModel):
    """Admin change of a user's role."""
    model_config = ConfigDict(populate_by_name=True)

    role: Role
    job_title: Optional[str] = Field(None, alias="jobTitle", max_length=100)
    note: Optional[str] = Field(None, max_length=2000)


class PhoneUpdate(BaseModel):
    """Self-service phone number change."""
    phone: str
    note: Optional[str] = Field(None, max_length=2000)

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: str) -> str:
        v = v.strip()
        if not _PHONE_RE.match(v):
            raise ValueError("Phone number is not valid.")
        return v


def user_to_public(doc: dict[str, Any]) -> dict[str, Any]:
    """Public user data returned to the client (never the password hash)."""
    return {
        "id": str(doc["_id"]),
        "username": doc.get("username", ""),
        "email": doc.get("email", ""),
        "name": doc.get("name", ""),
        "role": doc.get("role", "user"),
        "jobTitle": doc.get("job_title"),
        "avatar": doc.get("avatar"),
        "phone": doc.get("phone"),
    }
