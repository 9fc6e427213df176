"""
backend/app/config.py

Purpose:
    Central settings loading for backend services.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str
    MONGO_DB: str = "wathii"
    JWT_SECRET: str
    JWT_SECRET_OLD: str = ""  # Set during rotation; cleared once old tokens expired
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    COOKIE_SECURE: bool = False  # Set True in production (HTTPS)
    LOG_LEVEL: str = "INFO"

    # JWT settings
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Seed admin user (leave empty to skip seeding)
    SEED_ADMIN_EMAIL: str = ""
    SEED_ADMIN_PASSWORD: str = ""
    SEED_ADMIN_NAME: str = "Admin"

    # Audit trail
    AUDIT_DELETED_RETENTION_DAYS: int = 30
    AUDIT_EXPORT_MAX_ROWS: int = 5000
    AUDIT_PAGE_SIZE_DEFAULT: int = 50
    AUDIT_PAGE_SIZE_MAX: int = 200

    # Public subject lists
    PUBLIC_PAGE_SIZE_DEFAULT: int = 50
    PUBLIC_PAGE_SIZE_MAX: int = 200

    # Restoring a subject that is not soft-deleted:
    # "allow" appends a restored row anyway, "reject" answers 409.
    RESTORE_ACTIVE_POLICY: Literal["allow", "reject"] = "allow"

    # WebSocket realtime stream
    WS_EVENTS_ENABLED: bool = True
    WS_HEARTBEAT_SECONDS: int = 30
    WS_MAX_CONNECTIONS: int = 200

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
