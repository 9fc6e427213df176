"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: middleware/router wiring, exception
    mapping, realtime manager lifecycle and seed data.

Dependencies:
    - app.database
    - app.services.websocket_manager
"""

import logging
from contextlib import asynccontextmanager

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from app.config import settings
import app.database as _db
from app.database import connect_db, close_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.services.audit_query_service import AuditQueryError
from app.services.moderation_service import RestoreConflict, SubjectNotFound
from app.services.websocket_manager import websocket_manager

logger = logging.getLogger("wathii")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    await connect_db()

    from app.seed import seed_initial_admin
    await seed_initial_admin()

    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.start()
        logger.info("WebSocket realtime manager enabled")
    else:
        logger.info("WebSocket realtime manager disabled via config")

    yield

    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.stop()
    await close_db()


app = FastAPI(
    title="WATHII",
    description="Storefront moderation backend: soft-delete, restore and audit trails",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from app.routers.auth import router as auth_router
from app.routers.reviews import router as reviews_router
from app.routers.news import router as news_router
from app.routers.users import router as users_router
from app.routers.ws import router as ws_router

app.include_router(auth_router)
app.include_router(reviews_router)
app.include_router(news_router)
app.include_router(users_router)
app.include_router(ws_router)


@app.exception_handler(SubjectNotFound)
async def subject_not_found_handler(request: Request, exc: SubjectNotFound):
    return JSONResponse(status_code=404, content={"detail": f"{exc.kind.label} not found."})


@app.exception_handler(RestoreConflict)
async def restore_conflict_handler(request: Request, exc: RestoreConflict):
    return JSONResponse(status_code=409, content={"detail": f"{exc.kind.label} is not deleted."})


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        # Strip the "body" / "query" prefix for cleaner messages
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=400, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(AuditQueryError)
async def audit_query_error_handler(request: Request, exc: AuditQueryError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error.", "errors": [{"field": "query", "message": str(exc)}]},
    )


@app.exception_handler(ValidationError)
async def model_validation_error_handler(request: Request, exc: ValidationError):
    """Server-side model failure (e.g. a malformed stored document); never echoed."""
    logger.error("Model validation failed on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("ValueError on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid input."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check: DB ping plus realtime manager state."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "websocket": websocket_manager.stats(),
    }
