"""
backend/tests/test_websocket_manager.py

Purpose:
    Unit tests for websocket manager connection lifecycle, audit channel
    subscriptions, and heartbeat cleanup.
"""

from __future__ import annotations

import asyncio

import pytest

from app.services.websocket_manager import WebSocketManager


class _FakeWebSocket:
    def __init__(self, *, fail_send: bool = False):
        self.accepted = False
        self.fail_send = fail_send
        self.messages: list[dict] = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, payload):
        if self.fail_send:
            raise RuntimeError("send failed")
        self.messages.append(payload)


@pytest.mark.asyncio
async def test_new_connection_receives_every_audit_channel():
    manager = WebSocketManager(max_connections=10, heartbeat_seconds=30)
    ws = _FakeWebSocket()
    await manager.connect(ws, user_id="u1", role="admin")

    for channel in ("audit:review", "audit:news", "audit:user"):
        assert await manager.broadcast(channel=channel, data={"id": channel}) == 1

    assert ws.accepted
    assert [m["type"] for m in ws.messages] == ["audit:review", "audit:news", "audit:user"]
    assert ws.messages[0]["data"] == {"id": "audit:review"}


@pytest.mark.asyncio
async def test_subscription_commands_filter_broadcast():
    manager = WebSocketManager(max_connections=10, heartbeat_seconds=30)
    ws = _FakeWebSocket()
    conn_id = await manager.connect(ws, user_id="u1", role="staff", channels=["audit:review"])

    assert await manager.broadcast(channel="audit:news", data={}) == 0

    channels = await manager.update_channels(conn_id, "subscribe", {"channels": ["audit:news", "bogus"]})
    assert channels == ["audit:news", "audit:review"]
    assert await manager.broadcast(channel="audit:news", data={}) == 1

    channels = await manager.update_channels(conn_id, "unsubscribe", {"channels": ["audit:review"]})
    assert channels == ["audit:news"]

    channels = await manager.update_channels(conn_id, "replace_subscriptions", {"channels": ["audit:user"]})
    assert channels == ["audit:user"]

    with pytest.raises(ValueError):
        await manager.update_channels(conn_id, "shout", {})


@pytest.mark.asyncio
async def test_failed_send_drops_connection_and_counts():
    manager = WebSocketManager(max_connections=10, heartbeat_seconds=30)
    ok = _FakeWebSocket()
    broken = _FakeWebSocket(fail_send=True)
    await manager.connect(ok, user_id="u-ok", role="admin")
    await manager.connect(broken, user_id="u-broken", role="admin")

    delivered = await manager.broadcast(channel="audit:review", data={"id": "a1"})

    assert delivered == 1
    stats = manager.stats()
    assert stats["active_connections"] == 1
    assert stats["connections_by_role"] == {"admin": 1}
    assert stats["send_failures"] == 1
    assert stats["dropped_connections"] == 1
    assert stats["last_errors"][0]["channel"] == "audit:review"


@pytest.mark.asyncio
async def test_connection_limit():
    manager = WebSocketManager(max_connections=1, heartbeat_seconds=30)
    await manager.connect(_FakeWebSocket(), user_id="u1", role="admin")
    assert manager.is_full
    assert manager.stats()["connections_by_role"] == {"admin": 1}
    with pytest.raises(RuntimeError):
        await manager.connect(_FakeWebSocket(), user_id="u2", role="admin")


@pytest.mark.asyncio
async def test_heartbeat_removes_dead_connections():
    manager = WebSocketManager(max_connections=10, heartbeat_seconds=1)
    ws_ok = _FakeWebSocket()
    ws_fail = _FakeWebSocket(fail_send=True)
    await manager.connect(ws_ok, user_id="u-ok", role="admin")
    await manager.connect(ws_fail, user_id="u-fail", role="staff")
    await manager.start()
    await asyncio.sleep(2.2)
    await manager.stop()
    stats = manager.stats()
    assert stats["dropped_connections"] >= 1
    assert ws_ok.messages and ws_ok.messages[0]["type"] == "ping"
