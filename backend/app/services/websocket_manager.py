"""
backend/app/services/websocket_manager.py

Purpose:
    Process-local WebSocket connection manager for live moderation streams.
    Tracks privileged dashboard connections, their audit channel
    subscriptions, heartbeat, and best-effort broadcast delivery. There is no
    replay: a client that connects after an event only sees it by querying
    the audit endpoints.

Dependencies:
    - fastapi.WebSocket
    - app.config
    - app.services.subject_registry
    - app.utils
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from app.config import settings
from app.services.subject_registry import AUDIT_CHANNELS
from app.utils import utcnow

logger = logging.getLogger("wathii.websocket_manager")

KNOWN_CHANNELS = AUDIT_CHANNELS


def _normalize_channels(values: Any) -> set[str]:
    if not isinstance(values, list):
        return set()
    out: set[str] = set()
    for item in values:
        value = str(item or "").strip()
        if value in KNOWN_CHANNELS:
            out.add(value)
        elif value:
            logger.warning("WebSocket payload names unknown channel '%s'", value)
    return out


@dataclass
class ManagedConnection:
    connection_id: str
    user_id: str
    role: str
    websocket: WebSocket
    connected_at: datetime
    last_seen_at: datetime
    channels: set[str] = field(default_factory=lambda: set(KNOWN_CHANNELS))


class WebSocketManager:
    def __init__(
        self,
        *,
        max_connections: int,
        heartbeat_seconds: int,
    ) -> None:
        self._max_connections = max(1, int(max_connections))
        self._heartbeat_seconds = max(1, int(heartbeat_seconds))
        self._connections: dict[str, ManagedConnection] = {}
        self._lock = asyncio.Lock()
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False
        self._broadcast_total = 0
        self._send_failures = 0
        self._dropped_connections = 0
        self._last_errors: list[dict[str, Any]] = []

    @property
    def is_full(self) -> bool:
        return len(self._connections) >= self._max_connections

    async def start(self) -> None:
        async with self._lock:
            if self._running:
                return
            self._running = True
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="ws_heartbeat")
            logger.info("WebSocket manager started")

    async def stop(self) -> None:
        async with self._lock:
            if not self._running:
                return
            self._running = False
            if self._heartbeat_task is not None:
                self._heartbeat_task.cancel()
                try:
                    await self._heartbeat_task
                except asyncio.CancelledError:
                    pass
                self._heartbeat_task = None
            self._connections.clear()
            logger.info("WebSocket manager stopped")

    async def connect(
        self,
        websocket: WebSocket,
        *,
        user_id: str,
        role: str,
        channels: list[str] | None = None,
    ) -> str:
        await websocket.accept()
        async with self._lock:
            if len(self._connections) >= self._max_connections:
                raise RuntimeError("max_connections_exceeded")
            connection_id = str(uuid.uuid4())
            now = utcnow()
            conn = ManagedConnection(
                connection_id=connection_id,
                user_id=str(user_id),
                role=str(role),
                websocket=websocket,
                connected_at=now,
                last_seen_at=now,
            )
            if channels is not None:
                conn.channels = _normalize_channels(channels)
            self._connections[connection_id] = conn
            logger.info("WS client %s connected (%d total)", user_id, len(self._connections))
            return connection_id

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)

    async def touch(self, connection_id: str) -> None:
        async with self._lock:
            conn = self._connections.get(connection_id)
            if conn:
                conn.last_seen_at = utcnow()

    async def update_channels(self, connection_id: str, command_type: str, payload: dict[str, Any]) -> list[str]:
        async with self._lock:
            conn = self._connections.get(connection_id)
            if not conn:
                raise RuntimeError("connection_not_found")

            incoming = _normalize_channels(payload.get("channels", []) if isinstance(payload, dict) else [])
            if command_type == "replace_subscriptions":
                conn.channels = incoming
            elif command_type == "subscribe":
                conn.channels.update(incoming)
            elif command_type == "unsubscribe":
                conn.channels.difference_update(incoming)
            else:
                raise ValueError("unsupported_command")

            conn.last_seen_at = utcnow()
            return sorted(conn.channels)

    async def broadcast(self, *, channel: str, data: dict[str, Any]) -> int:
        """Send {"type": channel, "data": data} to every subscribed connection.

        Returns the number of deliveries. Failed sends drop the connection.
        """
        message = {"type": str(channel), "data": data}

        async with self._lock:
            connections = list(self._connections.values())

        delivered = 0
        dead_ids: list[str] = []
        for conn in connections:
            if channel not in conn.channels:
                continue
            try:
                await conn.websocket.send_json(message)
                delivered += 1
            except Exception as exc:
                dead_ids.append(conn.connection_id)
                self._send_failures += 1
                self._append_error(
                    {
                        "ts": utcnow().isoformat(),
                        "connection_id": conn.connection_id,
                        "channel": str(channel),
                        "error": str(exc),
                    }
                )

        for conn_id in dead_ids:
            await self.disconnect(conn_id)
            self._dropped_connections += 1

        self._broadcast_total += 1
        return delivered

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "active_connections": len(self._connections),
            "connections_by_role": self._connections_by_role(),
            "max_connections": self._max_connections,
            "heartbeat_seconds": self._heartbeat_seconds,
            "broadcast_total": self._broadcast_total,
            "send_failures": self._send_failures,
            "dropped_connections": self._dropped_connections,
            "last_errors": list(self._last_errors),
        }

    async def _heartbeat_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._heartbeat_seconds)
            async with self._lock:
                connections = list(self._connections.values())
            dead_ids: list[str] = []
            for conn in connections:
                try:
                    await conn.websocket.send_json({"type": "ping", "data": {"ts": utcnow().isoformat()}})
                except Exception:
                    dead_ids.append(conn.connection_id)
            for conn_id in dead_ids:
                await self.disconnect(conn_id)
                self._dropped_connections += 1

    def _connections_by_role(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for conn in self._connections.values():
            counts[conn.role] = counts.get(conn.role, 0) + 1
        return counts

    def _append_error(self, error: dict[str, Any]) -> None:
        self._last_errors.append(error)
        if len(self._last_errors) > 200:
            self._last_errors = self._last_errors[-200:]


websocket_manager = WebSocketManager(
    max_connections=settings.WS_MAX_CONNECTIONS,
    heartbeat_seconds=settings.WS_HEARTBEAT_SECONDS,
)
