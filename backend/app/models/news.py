from typing import Any, Optional

from pydantic import BaseModel, Field

from app.utils import isoformat_utc


class NewsViewsUpdate(BaseModel):
    """Admin override of a news article's view counter."""
    views: int = Field(ge=0)
    note: Optional[str] = Field(None, max_length=2000)


def news_to_public(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "title": doc.get("title", ""),
        "content": doc.get("content", ""),
        "author": doc.get("author", ""),
        "date": doc.get("date", ""),
        "image": doc.get("image"),
        "views": int(doc.get("views") or 0),
        "createdAt": isoformat_utc(doc.get("created_at")),
    }
