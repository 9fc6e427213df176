"""
backend/tests/test_news_router.py

Purpose:
    News moderation over HTTP plus the view counter and its audit rows.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bson import ObjectId


def _seed_news(fake_db, title: str = "Ramadan opening hours", views: int = 0) -> str:
    doc = {
        "_id": ObjectId(),
        "title": title,
        "content": "We open at sunset.",
        "author": "Kitchen",
        "date": "2026-03-01",
        "views": views,
        "created_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
    }
    fake_db.news.docs.append(doc)
    return str(doc["_id"])


def test_deleted_news_is_hidden_until_restored(api_client, fake_db, staff_actor, admin_actor):
    news_id = _seed_news(fake_db)
    anon = api_client(None)
    assert anon.get(f"/api/news/{news_id}").status_code == 200

    staff = api_client(staff_actor)
    assert staff.request("DELETE", f"/api/news/{news_id}", json={"reason": "outdated"}).status_code == 200
    assert staff.get(f"/api/news/{news_id}").status_code == 404
    assert staff.get("/api/news").json()["news"] == []

    admin = api_client(admin_actor)
    response = admin.post(f"/api/news/{news_id}/restore", json={"note": "reposting"})
    assert response.status_code == 200
    assert response.json()["news"]["title"] == "Ramadan opening hours"
    assert [n["id"] for n in admin.get("/api/news").json()["news"]] == [news_id]

    rows = admin.get("/api/news/audit", params={"newsId": news_id, "sort": "asc"}).json()["audits"]
    assert [r["action"] for r in rows] == ["deleted", "restored"]
    assert rows[1]["note"] == "reposting (restored; prevReason: outdated)"


def test_view_counted_once_per_viewer(api_client, fake_db, customer_actor):
    news_id = _seed_news(fake_db, views=2)
    client = api_client(customer_actor)

    first = client.post(f"/api/news/{news_id}/view").json()
    second = client.post(f"/api/news/{news_id}/view").json()

    assert first == {"success": True, "views": 3, "isNewView": True}
    assert second["isNewView"] is False
    assert second["views"] == 3
    assert fake_db.news_views.docs[0]["viewer_key"] == customer_actor.id


def test_view_on_deleted_news_is_404(api_client, fake_db, staff_actor):
    news_id = _seed_news(fake_db)
    client = api_client(staff_actor)
    client.request("DELETE", f"/api/news/{news_id}")
    assert client.post(f"/api/news/{news_id}/view").status_code == 404


def test_view_statistics_are_audited(api_client, fake_db, admin_actor):
    news_id = _seed_news(fake_db)
    api_client(None).post(f"/api/news/{news_id}/view")

    body = api_client(admin_actor).get(f"/api/news/{news_id}/views").json()

    assert body["totalViews"] == 1
    assert body["uniqueViewers"] == 1
    assert len(body["viewHistory"]) == 1
    assert fake_db.news_audits.docs[-1]["action"] == "viewed"
    assert fake_db.news_audits.docs[-1]["by_id"] == admin_actor.id


def test_view_count_override_records_old_and_new(api_client, fake_db, admin_actor, staff_actor):
    news_id = _seed_news(fake_db, views=10)

    assert api_client(staff_actor).patch(f"/api/news/{news_id}/views", json={"views": 0}).status_code == 403

    admin = api_client(admin_actor)
    response = admin.patch(f"/api/news/{news_id}/views", json={"views": 42, "note": "migration"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "views": 42}
    assert fake_db.news.docs[0]["views"] == 42

    row = fake_db.news_audits.docs[-1]
    assert row["action"] == "views_updated"
    assert row["note"] == "10 -> 42 (migration)"

    assert admin.patch(f"/api/news/{news_id}/views", json={"views": -1}).status_code == 400


def test_news_audit_actions_listing(api_client, fake_db, staff_actor, admin_actor):
    news_id = _seed_news(fake_db)
    api_client(staff_actor).request("DELETE", f"/api/news/{news_id}")
    api_client(admin_actor).post(f"/api/news/{news_id}/restore")

    assert api_client(admin_actor).get("/api/news/audit/actions").json() == ["deleted", "restored"]
    assert api_client(staff_actor).get("/api/news/audit/actions").status_code == 403
