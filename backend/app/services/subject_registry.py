"""
backend/app/services/subject_registry.py

Purpose:
    Static description of every moderatable subject kind: where its documents
    and audit rows live, how the subject id is named on the wire, and which
    realtime channel carries its audit events.

Dependencies:
    - app.database
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection

import app.database as _db
from app.models.news import news_to_public
from app.models.review import review_to_public
from app.models.user import user_to_public

AUDIT_CSV_TAIL = ("action", "byId", "byName", "reason", "note", "timestamp")


@dataclass(frozen=True)
class SubjectKind:
    key: str
    label: str
    collection: str
    audit_collection: str
    subject_field: str  # audit document field holding the subject id
    wire_key: str  # same id in JSON/CSV/query params
    channel: str
    to_public: Callable[[dict[str, Any]], dict[str, Any]]

    def subjects(self) -> AsyncIOMotorCollection:
        return getattr(_db.db, self.collection)

    def audits(self) -> AsyncIOMotorCollection:
        return getattr(_db.db, self.audit_collection)

    @property
    def csv_header(self) -> list[str]:
        return ["id", self.wire_key, *AUDIT_CSV_TAIL]


REVIEW = SubjectKind(
    key="review",
    label="Review",
    collection="reviews",
    audit_collection="review_audits",
    subject_field="review_id",
    wire_key="reviewId",
    channel="audit:review",
    to_public=review_to_public,
)

NEWS = SubjectKind(
    key="news",
    label="News",
    collection="news",
    audit_collection="news_audits",
    subject_field="news_id",
    wire_key="newsId",
    channel="audit:news",
    to_public=news_to_public,
)

USER = SubjectKind(
    key="user",
    label="User",
    collection="users",
    audit_collection="user_audits",
    subject_field="user_id",
    wire_key="userId",
    channel="audit:user",
    to_public=user_to_public,
)

SUBJECT_KINDS: dict[str, SubjectKind] = {kind.key: kind for kind in (REVIEW, NEWS, USER)}
AUDIT_CHANNELS: tuple[str, ...] = tuple(kind.channel for kind in SUBJECT_KINDS.values())


def parse_object_id(value: str) -> ObjectId | None:
    """ObjectId for a well-formed id string, None otherwise."""
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(str(value or "")):
        return None
    return ObjectId(str(value))
