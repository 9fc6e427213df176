"""
backend/tests/test_users_router.py

Purpose:
    User moderation and profile changes over HTTP: soft delete and restore,
    self-delete guard, phone and role changes with their audit rows.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bson import ObjectId


def _seed_user(fake_db, _id: str | None = None, **extra) -> str:
    doc = {
        "_id": ObjectId(_id) if _id else ObjectId(),
        "username": "halima",
        "email": "halima@example.com",
        "name": "Halima",
        "role": "user",
        "hashed_password": "argon2-hash",
        "created_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
    }
    doc.update(extra)
    fake_db.users.docs.append(doc)
    return str(doc["_id"])


def test_admin_lists_only_active_users_without_hashes(api_client, fake_db, admin_actor):
    active_id = _seed_user(fake_db)
    _seed_user(fake_db, username="gone", email="gone@example.com", deleted_at=datetime(2026, 2, 1, tzinfo=timezone.utc))

    body = api_client(admin_actor).get("/api/users").json()

    assert [u["id"] for u in body["users"]] == [active_id]
    assert "hashed_password" not in body["users"][0]


def test_delete_and_restore_user(api_client, fake_db, admin_actor):
    user_id = _seed_user(fake_db)
    admin = api_client(admin_actor)

    response = admin.request("DELETE", f"/api/users/{user_id}", json={"reason": "fraud", "note": "chargebacks"})
    assert response.status_code == 200
    assert fake_db.users.docs[0]["deleted_reason"] == "fraud"
    assert admin.get("/api/users").json()["users"] == []

    restored = admin.post(f"/api/users/{user_id}/restore").json()["user"]
    assert restored["id"] == user_id
    assert "hashed_password" not in restored

    rows = admin.get("/api/users/audit", params={"userId": user_id, "sort": "asc"}).json()["audits"]
    assert [r["action"] for r in rows] == ["deleted", "restored"]
    assert rows[0]["userId"] == user_id
    assert rows[1]["note"] == "restored; prevReason: fraud"


def test_admin_cannot_delete_self(api_client, fake_db, admin_actor):
    _seed_user(fake_db, _id=admin_actor.id, role="admin")
    response = api_client(admin_actor).request("DELETE", f"/api/users/{admin_actor.id}")
    assert response.status_code == 400
    assert "deleted_at" not in fake_db.users.docs[0]


def test_staff_cannot_moderate_users(api_client, fake_db, staff_actor):
    user_id = _seed_user(fake_db)
    staff = api_client(staff_actor)
    assert staff.request("DELETE", f"/api/users/{user_id}").status_code == 403
    assert staff.get("/api/users/audit").status_code == 403


def test_phone_change_is_audited_with_new_value(api_client, fake_db, customer_actor):
    _seed_user(fake_db, _id=customer_actor.id, phone="+254700000001")

    response = api_client(customer_actor).patch("/api/users/me/phone", json={"phone": "+254 711 222 333"})

    assert response.status_code == 200
    assert response.json()["user"]["phone"] == "+254 711 222 333"
    row = fake_db.user_audits.docs[-1]
    assert row["action"] == "phone_changed"
    assert row["new_value"] == "+254 711 222 333"
    assert row["reason"] == "previous: +254700000001"


def test_phone_change_rejects_garbage(api_client, fake_db, customer_actor):
    _seed_user(fake_db, _id=customer_actor.id)
    response = api_client(customer_actor).patch("/api/users/me/phone", json={"phone": "call me"})
    assert response.status_code == 400
    assert fake_db.user_audits.docs == []


def test_role_change_is_audited(api_client, fake_db, admin_actor):
    user_id = _seed_user(fake_db)

    response = api_client(admin_actor).patch(
        f"/api/users/{user_id}/role",
        json={"role": "staff", "jobTitle": " Chef ", "note": "promotion"},
    )

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["role"] == "staff"
    assert user["jobTitle"] == "Chef"

    audit = api_client(admin_actor).get("/api/users/audit", params={"action": "role_changed"}).json()
    assert audit["total"] == 1
    row = audit["audits"][0]
    assert row["newValue"] == "staff"
    assert row["reason"] == "previous: user"
    assert row["note"] == "promotion"


def test_role_change_on_deleted_user_is_404(api_client, fake_db, admin_actor):
    user_id = _seed_user(fake_db, deleted_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
    response = api_client(admin_actor).patch(f"/api/users/{user_id}/role", json={"role": "admin"})
    assert response.status_code == 404
