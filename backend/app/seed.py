import logging

import app.database as _db
from app.config import settings
from app.services.auth_service import hash_password
from app.utils import utcnow

logger = logging.getLogger("wathii.seed")


async def seed_initial_admin() -> None:
    """Create the seed admin user if configured via env and no users exist."""
    if not settings.SEED_ADMIN_EMAIL or not settings.SEED_ADMIN_PASSWORD:
        logger.debug("SEED_ADMIN_EMAIL not set, skipping seed")
        return

    email = settings.SEED_ADMIN_EMAIL.lower()
    existing = await _db.db.users.find_one({"email": email})
    if existing:
        if existing.get("role") != "admin":
            await _db.db.users.update_one(
                {"_id": existing["_id"]},
                {"$set": {"role": "admin", "updated_at": utcnow()}},
            )
            logger.info("Seed user promoted to admin")
        else:
            logger.info("Seed admin already exists, skipping")
        return

    now = utcnow()
    result = await _db.db.users.insert_one({
        "username": email.split("@", 1)[0],
        "email": email,
        "hashed_password": hash_password(settings.SEED_ADMIN_PASSWORD),
        "name": settings.SEED_ADMIN_NAME,
        "role": "admin",
        "created_at": now,
        "updated_at": now,
    })
    logger.info("Seed admin created: %s", result.inserted_id)
