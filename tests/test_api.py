"""Tests for the FastAPI routes.

Covers:
- GET /health
- PUT /cities/{city_id}/meetings/{meeting_id}/subjects
- POST /cities/{city_id}/meetings/{meeting_id}/notifications (+ /preview)
- GET /admin/notifications, /admin/notifications/cities, /admin/notifications/meetings/...
- POST /admin/notifications/bulk-delete, DELETE /admin/notifications/{id}
- GET /deliveries/pending, POST /deliveries/{id}/status
- GET /notifications/{id}, GET /users/{id}/notifications, GET/DELETE /users/{id}/preferences
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.db.models import Notification, NotificationPreference, Subject
from tests.factories import (
    ORIGIN,
    make_city,
    make_meeting,
    make_notification,
    make_preference,
    make_topic,
    make_user,
    offset_point,
)


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def world(db_session: Session) -> dict:
    city = make_city(db_session)
    meeting = make_meeting(db_session, city, days_from_now=2)
    topic = make_topic(db_session, "Transport")
    fan = make_user(db_session, "fan@example.gr", phone="6912345678", name="Fan")
    neighbour = make_user(db_session, "neighbour@example.gr")
    make_preference(db_session, fan, city, interests=[topic])
    make_preference(db_session, neighbour, city, points=[offset_point(*ORIGIN, north_m=200)])
    db_session.commit()
    return {"city": city, "meeting": meeting, "topic": topic, "fan": fan, "neighbour": neighbour}


def _subjects_url(world: dict) -> str:
    return f"/cities/{world['city'].id}/meetings/{world['meeting'].id}/subjects"


def _notifications_url(world: dict) -> str:
    return f"/cities/{world['city'].id}/meetings/{world['meeting'].id}/notifications"


_PASS = [
    {
        "name": "Bus lanes",
        "description": "Dedicated lanes on the avenue",
        "agendaItemIndex": 1,
        "topicLabel": "Transport",
        "proximityImportance": "near",
        "location": {"type": "point", "text": "Syntagma", "coordinates": [ORIGIN[1], ORIGIN[0]]},
        "speakerContributions": [{"speakerName": "Mayor", "text": "Opening"}],
    },
    {"name": "Announcements", "agendaItemIndex": "BEFORE_AGENDA"},
]


# ===========================================================================
# GET /health
# ===========================================================================


class TestHealth:
    def test_health_returns_200(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_reports_database(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert "version" in body


# ===========================================================================
# PUT subjects
# ===========================================================================


class TestPutSubjects:
    def test_reconciles_pass(self, client: TestClient, db_session: Session, world: dict) -> None:
        resp = client.put(_subjects_url(world), json=_PASS)

        assert resp.status_code == 200
        body = resp.json()
        assert set(body["subject_ids"]) == {"1", "BEFORE_AGENDA"}
        assert body["failures"] == []
        subject = db_session.get(Subject, body["subject_ids"]["1"])
        assert subject.topic_id == world["topic"].id

    def test_second_pass_keeps_ids(self, client: TestClient, world: dict) -> None:
        first = client.put(_subjects_url(world), json=_PASS).json()
        second = client.put(_subjects_url(world), json=_PASS).json()

        assert first["subject_ids"] == second["subject_ids"]

    def test_failed_record_reported(self, client: TestClient, world: dict) -> None:
        bad = {"name": "Bad", "agendaItemIndex": 2, "location": {"coordinates": [500, 500]}}
        body = client.put(_subjects_url(world), json=[*_PASS, bad]).json()

        assert [f["key"] for f in body["failures"]] == ["2"]

    def test_unknown_meeting_404(self, client: TestClient, world: dict) -> None:
        resp = client.put(f"/cities/{world['city'].id}/meetings/missing/subjects", json=_PASS)
        assert resp.status_code == 404

    def test_invalid_body_422(self, client: TestClient, world: dict) -> None:
        resp = client.put(_subjects_url(world), json=[{"agendaItemIndex": 1}])
        assert resp.status_code == 422


# ===========================================================================
# POST notifications
# ===========================================================================


class TestNotifications:
    def test_create(self, client: TestClient, db_session: Session, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)

        resp = client.post(_notifications_url(world), json={"type": "beforeMeeting"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["notifications_created"] == 2
        assert body["subjects_total"] == 2
        count = db_session.execute(select(func.count()).select_from(Notification)).scalar_one()
        assert count == 2

    def test_create_with_overrides(self, client: TestClient, world: dict) -> None:
        ids = client.put(_subjects_url(world), json=_PASS).json()["subject_ids"]
        overrides = {ids["1"]: {"topicImportance": "doNotNotify", "proximityImportance": "none"}}

        body = client.post(
            _notifications_url(world), json={"type": "afterMeeting", "overrides": overrides}
        ).json()

        assert body["notifications_created"] == 0

    def test_invalid_type_422(self, client: TestClient, world: dict) -> None:
        resp = client.post(_notifications_url(world), json={"type": "weekly"})
        assert resp.status_code == 422

    def test_unknown_meeting_404(self, client: TestClient, world: dict) -> None:
        resp = client.post(
            f"/cities/{world['city'].id}/meetings/missing/notifications", json={"type": "beforeMeeting"}
        )
        assert resp.status_code == 404

    def test_preview(self, client: TestClient, world: dict) -> None:
        ids = client.put(_subjects_url(world), json=_PASS).json()["subject_ids"]

        body = client.post(f"{_notifications_url(world)}/preview", json={}).json()

        assert body == {"total_users": 2, "subject_impact": {ids["1"]: 2}}


# ===========================================================================
# Admin
# ===========================================================================


class TestAdmin:
    def test_grouped_listing(self, client: TestClient, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)
        client.post(_notifications_url(world), json={"type": "beforeMeeting"})

        body = client.get("/admin/notifications").json()

        assert body["pagination"]["total"] == 1
        [group] = body["meetings"]
        assert group["meeting_id"] == world["meeting"].id
        assert group["before"] == {"pending": 2, "sent": 0, "failed": 0, "total": 2}
        assert group["after"] is None
        assert isinstance(group["meeting_date"], str)

    def test_invalid_status_400(self, client: TestClient) -> None:
        resp = client.get("/admin/notifications", params={"status": "bounced"})
        assert resp.status_code == 400

    def test_out_of_range_page(self, client: TestClient, db_session: Session, world: dict) -> None:
        make_notification(db_session, world["fan"], world["meeting"])
        db_session.commit()

        body = client.get("/admin/notifications", params={"page": 100}).json()

        assert body["meetings"] == []
        assert body["pagination"]["total"] == 1

    def test_cities(self, client: TestClient, db_session: Session, world: dict) -> None:
        make_notification(db_session, world["fan"], world["meeting"])
        db_session.commit()

        assert client.get("/admin/notifications/cities").json() == [
            {"id": world["city"].id, "name": "Municipality of Athens"}
        ]

    def test_meeting_expansion_masks_addresses(self, client: TestClient, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)
        client.post(_notifications_url(world), json={"type": "beforeMeeting"})

        rows = client.get(
            f"/admin/notifications/meetings/{world['city'].id}/{world['meeting'].id}"
        ).json()

        fan_row = next(r for r in rows if r["user"]["name"] == "Fan")
        assert fan_row["user"]["email"] == "f***@example.gr"
        assert {d["medium"] for d in fan_row["deliveries"]} == {"email", "message"}
        assert all("6912345678" not in (d["phone"] or "") for d in fan_row["deliveries"])
        assert fan_row["subjects"][0]["reason"] == "topic"

    def test_bulk_delete_by_type(self, client: TestClient, db_session: Session, world: dict) -> None:
        make_notification(db_session, world["fan"], world["meeting"], "beforeMeeting")
        make_notification(db_session, world["fan"], world["meeting"], "afterMeeting")
        db_session.commit()

        resp = client.post(
            "/admin/notifications/bulk-delete",
            json={
                "targets": [{"meetingId": world["meeting"].id, "cityId": world["city"].id}],
                "type": "beforeMeeting",
            },
        )

        assert resp.json() == {"deleted": 1}
        remaining = db_session.execute(select(Notification.type)).scalars().all()
        assert remaining == ["afterMeeting"]

    def test_delete_one(self, client: TestClient, db_session: Session, world: dict) -> None:
        notification = make_notification(db_session, world["fan"], world["meeting"])
        db_session.commit()

        assert client.delete(f"/admin/notifications/{notification.id}").status_code == 200
        assert client.delete(f"/admin/notifications/{notification.id}").status_code == 404


# ===========================================================================
# Deliveries
# ===========================================================================


class TestDeliveries:
    def test_pending_then_mark_sent(self, client: TestClient, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)
        ids = client.post(_notifications_url(world), json={"type": "beforeMeeting"}).json()["notification_ids"]

        pending = client.get("/deliveries/pending", params={"notification_id": ids}).json()
        assert len(pending) == 3

        message = next(d for d in pending if d["medium"] == "message")
        resp = client.post(
            f"/deliveries/{message['id']}/status", json={"status": "sent", "message_sent_via": "sms"}
        )
        assert resp.status_code == 200
        assert resp.json()["sent_at"] is not None

        pending = client.get("/deliveries/pending", params={"notification_id": ids}).json()
        assert len(pending) == 2

    def test_bad_status_400(self, client: TestClient, db_session: Session, world: dict) -> None:
        notification = make_notification(db_session, world["fan"], world["meeting"])
        db_session.commit()
        delivery_id = notification.deliveries[0].id

        resp = client.post(f"/deliveries/{delivery_id}/status", json={"status": "pending"})
        assert resp.status_code == 400

    def test_unknown_delivery_404(self, client: TestClient) -> None:
        resp = client.post("/deliveries/missing/status", json={"status": "sent"})
        assert resp.status_code == 404


# ===========================================================================
# Subscribers
# ===========================================================================


class TestSubscribers:
    def test_public_view_has_no_addresses(self, client: TestClient, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)
        ids = client.post(_notifications_url(world), json={"type": "beforeMeeting"}).json()["notification_ids"]

        views = [client.get(f"/notifications/{i}").json() for i in ids]

        fan_view = next(v for v in views if v["user"]["id"] == world["fan"].id)
        assert fan_view["user"]["name"] == "Fan"
        assert fan_view["city"]["name"] == "Municipality of Athens"
        [subject] = fan_view["subjects"]
        assert subject["name"] == "Bus lanes"
        assert subject["topic"]["name"] == "Transport"
        assert subject["location"]["coordinates"] == [ORIGIN[1], ORIGIN[0]]
        assert {d["medium"] for d in fan_view["deliveries"]} == {"email", "message"}
        assert "@" not in str(views)

    def test_unknown_notification_404(self, client: TestClient) -> None:
        assert client.get("/notifications/missing").status_code == 404

    def test_user_notifications(self, client: TestClient, world: dict) -> None:
        client.put(_subjects_url(world), json=_PASS)
        client.post(_notifications_url(world), json={"type": "beforeMeeting"})

        resp = client.get(f"/users/{world['fan'].id}/notifications", params={"city_id": world["city"].id})

        assert resp.status_code == 200
        [summary] = resp.json()
        assert summary["meeting"]["id"] == world["meeting"].id
        assert summary["subjects"] == ["Bus lanes"]
        assert summary["status"] == "pending"

    def test_user_notifications_bad_limit_400(self, client: TestClient, world: dict) -> None:
        resp = client.get(
            f"/users/{world['fan'].id}/notifications", params={"city_id": world["city"].id, "limit": 0}
        )
        assert resp.status_code == 400

    def test_preferences(self, client: TestClient, world: dict) -> None:
        [pref] = client.get(f"/users/{world['fan'].id}/preferences").json()

        assert pref["city"] == {"id": world["city"].id, "name": "Municipality of Athens"}
        assert [t["name"] for t in pref["interests"]] == ["Transport"]
        assert pref["locations"] == []

    def test_delete_preference(self, client: TestClient, db_session: Session, world: dict) -> None:
        [pref] = client.get(f"/users/{world['fan'].id}/preferences").json()

        resp = client.delete(f"/users/{world['fan'].id}/preferences/{pref['id']}")

        assert resp.status_code == 200
        assert client.get(f"/users/{world['fan'].id}/preferences").json() == []
        remaining = db_session.execute(select(func.count()).select_from(NotificationPreference)).scalar_one()
        assert remaining == 1

    def test_delete_other_users_preference_404(self, client: TestClient, world: dict) -> None:
        [pref] = client.get(f"/users/{world['fan'].id}/preferences").json()

        resp = client.delete(f"/users/{world['neighbour'].id}/preferences/{pref['id']}")

        assert resp.status_code == 404
        assert len(client.get(f"/users/{world['fan'].id}/preferences").json()) == 1
