from typing import Optional

from pydantic import BaseModel, Field


class SoftDeleteRequest(BaseModel):
    """Body for DELETE on a moderatable subject."""
    reason: Optional[str] = Field(None, max_length=500)
    note: Optional[str] = Field(None, max_length=2000)


class RestoreRequest(BaseModel):
    """Body for POST .../restore."""
    note: Optional[str] = Field(None, max_length=2000)
