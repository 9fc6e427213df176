from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils import isoformat_utc


class ReviewCreate(BaseModel):
    """Request body for submitting a product review."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1, max_length=100)
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1, max_length=2000)

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment must not be empty.")
        return v


def review_to_public(doc: dict[str, Any]) -> dict[str, Any]:
    """Public representation; deletion metadata never leaves the server here."""
    created_at: datetime | None = doc.get("created_at")
    return {
        "id": str(doc["_id"]),
        "productId": doc.get("product_id", ""),
        "userId": doc.get("user_id", ""),
        "userName": doc.get("user_name", ""),
        "rating": doc.get("rating"),
        "comment": doc.get("comment", ""),
        "createdAt": isoformat_utc(created_at),
    }
