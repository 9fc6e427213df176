"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths, the environment required by
    app.config, an in-memory database fixture and actor fixtures.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_TESTS_DIR = _THIS_FILE.parent

for candidate in (str(_BACKEND_DIR), str(_TESTS_DIR)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production-0123456789abcdef")

from fake_mongo import FakeDatabase  # noqa: E402

import app.database as _db  # noqa: E402
from app.models.actor import AuthenticatedActor  # noqa: E402


@pytest.fixture
def fake_db(monkeypatch) -> FakeDatabase:
    db = FakeDatabase()
    monkeypatch.setattr(_db, "db", db, raising=False)
    return db


@pytest.fixture
def admin_actor() -> AuthenticatedActor:
    return AuthenticatedActor(id="65f000000000000000000001", name="Amina Admin", role="admin")


@pytest.fixture
def staff_actor() -> AuthenticatedActor:
    return AuthenticatedActor(id="65f000000000000000000002", name="Sam Staff", role="staff")


@pytest.fixture
def customer_actor() -> AuthenticatedActor:
    return AuthenticatedActor(id="65f000000000000000000003", name="Chris Customer", role="user")


@pytest.fixture
def api_client(fake_db):
    """Factory: TestClient on the real app, authenticated as the given actor (or anonymous)."""
    from fastapi.testclient import TestClient

    from app.main import app
    from app.services.auth_service import get_current_actor, get_optional_actor

    def _build(actor: AuthenticatedActor | None) -> TestClient:
        if actor is None:
            app.dependency_overrides.pop(get_current_actor, None)
        else:
            async def _fake_current_actor():
                return actor
            app.dependency_overrides[get_current_actor] = _fake_current_actor

        async def _fake_optional_actor():
            return actor
        app.dependency_overrides[get_optional_actor] = _fake_optional_actor
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()
