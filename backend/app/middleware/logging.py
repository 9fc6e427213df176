"""
backend/app/middleware/logging.py

Purpose:
    One JSON access-log line per HTTP request. Requests under a subject
    prefix (/api/reviews, /api/news, /api/users) are tagged with the subject
    kind, and the acting user's id and role are attached when an auth
    dependency resolved one (request.state.actor). DELETE and restore calls
    are flagged as moderation actions.
"""

import hashlib
import json
import logging
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("wathii.access")

_SUBJECT_PREFIXES = (
    ("/api/reviews", "review"),
    ("/api/news", "news"),
    ("/api/users", "user"),
)


def subject_kind_for_path(path: str) -> Optional[str]:
    for prefix, kind in _SUBJECT_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return kind
    return None


def is_moderation_call(method: str, path: str) -> bool:
    return method == "DELETE" or (method == "POST" and path.rstrip("/").endswith("/restore"))


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start = time.time()

        response: Response = await call_next(request)

        path = request.url.path
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round((time.time() - start) * 1000, 2),
            "client_ip_hash": hashlib.sha256(
                (request.client.host or "").encode()
            ).hexdigest()[:12] if request.client else None,
        }

        kind = subject_kind_for_path(path)
        if kind:
            log_data["subject_kind"] = kind
            log_data["moderation"] = is_moderation_call(request.method, path)

        actor = getattr(request.state, "actor", None)
        if actor is not None:
            log_data["actor_id"] = actor.id
            log_data["actor_role"] = actor.role

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, json.dumps(log_data))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
