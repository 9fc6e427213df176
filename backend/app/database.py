"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for subject, audit and
    news-view collections.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("wathii.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()
    logger.info("Connected to MongoDB database %s", settings.MONGO_DB)


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Users ----
    await db.users.create_index("email", unique=True)
    await db.users.create_index("username", unique=True)
    await db.users.create_index("deleted_at", sparse=True)

    # ---- Reviews ----
    await db.reviews.create_index([("product_id", 1), ("created_at", -1)])
    await db.reviews.create_index("deleted_at", sparse=True)

    # ---- News ----
    await db.news.create_index([("created_at", -1)])
    await db.news.create_index("deleted_at", sparse=True)

    await db.news_views.create_index([("news_id", 1), ("viewer_key", 1)], unique=True)
    await db.news_views.create_index([("news_id", 1), ("viewed_at", -1)])

    # ---- Audit trails (insert-only; housekeeping sweeps old "deleted" rows) ----
    for collection, subject_field in (
        (db.review_audits, "review_id"),
        (db.news_audits, "news_id"),
        (db.user_audits, "user_id"),
    ):
        await collection.create_index([(subject_field, 1), ("timestamp", -1)])
        await collection.create_index([("action", 1), ("timestamp", -1)])
        await collection.create_index([("timestamp", -1), ("_id", -1)])
        await collection.create_index("by_name")
