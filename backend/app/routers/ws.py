import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

import app.database as _db
from app.config import settings
from app.models.actor import AuthenticatedActor
from app.services.auth_service import resolve_actor
from app.services.websocket_manager import websocket_manager

logger = logging.getLogger("wathii.ws")

router = APIRouter()

_CHANNEL_COMMANDS = ("subscribe", "unsubscribe", "replace_subscriptions")


def _token_from_ws(ws: WebSocket) -> Optional[str]:
    """Access token from the cookie, falling back to ?token= for non-browser clients."""
    token = ws.cookies.get("access_token")
    if token:
        return token
    return ws.query_params.get("token") or None


async def _resolve_ws_actor(token: Optional[str]) -> Optional[AuthenticatedActor]:
    if not token:
        return None
    return await resolve_actor(token, _db.db)


def _parse_command(raw: str) -> Optional[dict[str, Any]]:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


@router.websocket("/ws/audit")
async def websocket_audit_stream(ws: WebSocket):
    """Live audit rows for the moderation dashboard (admin/staff only)."""
    if not settings.WS_EVENTS_ENABLED:
        await ws.close(code=4003, reason="Realtime events disabled")
        return

    actor = await _resolve_ws_actor(_token_from_ws(ws))
    if actor is None:
        await ws.close(code=4001, reason="Not authenticated")
        return
    if not actor.is_moderator:
        await ws.close(code=4003, reason="Insufficient permissions")
        return

    if websocket_manager.is_full:
        await ws.close(code=4002, reason="Too many connections")
        return

    channels_param = ws.query_params.get("channels")
    channels = channels_param.split(",") if channels_param else None
    try:
        connection_id = await websocket_manager.connect(
            ws, user_id=actor.id, role=actor.role, channels=channels,
        )
    except RuntimeError:
        await ws.close(code=4002, reason="Too many connections")
        return

    try:
        while True:
            data = await ws.receive_text()
            await websocket_manager.touch(connection_id)
            if data == "ping":
                await ws.send_text("pong")
                continue

            command = _parse_command(data)
            if command is None or command.get("type") not in _CHANNEL_COMMANDS:
                await ws.send_json({"type": "error", "data": {"detail": "unsupported_command"}})
                continue

            subscribed = await websocket_manager.update_channels(connection_id, command["type"], command)
            await ws.send_json({"type": "subscriptions", "data": {"channels": subscribed}})
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS audit stream error for %s", actor.id)
    finally:
        await websocket_manager.disconnect(connection_id)
        logger.info("WS client %s disconnected", actor.id)
