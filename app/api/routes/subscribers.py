"""Subscriber routes: the public notification page and a user's own data.

No recipient address appears in these responses.
"""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.admin.queries import notification_status
from app.api.deps import get_db
from app.core.errors import NotFoundError
from app.db.models import Notification, NotificationPreference
from app.notification.subscriber import (
    DEFAULT_USER_NOTIFICATION_LIMIT,
    delete_notification_preference,
    get_notification_for_view,
    get_user_notification_preferences,
    get_user_notifications,
)

router = APIRouter(tags=["subscribers"])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _serialize_view(n: Notification) -> dict:
    subjects = sorted(n.subjects, key=lambda ns: (ns.created_at, ns.subject.name))
    return {
        "id": n.id,
        "type": n.type,
        "created_at": _iso(n.created_at),
        "user": {"id": n.user.id, "name": n.user.name},
        "city": {"id": n.city.id, "name": n.city.name_municipality or n.city.name},
        "meeting": {
            "id": n.meeting.id,
            "name": n.meeting.name,
            "date": _iso(n.meeting.date_time),
            "administrative_body_name": n.meeting.administrative_body_name,
        },
        "subjects": [
            {
                "id": ns.subject.id,
                "name": ns.subject.name,
                "description": ns.subject.description,
                "reason": ns.reason,
                "topic": (
                    {"name": ns.subject.topic.name, "color": ns.subject.topic.color_hex}
                    if ns.subject.topic
                    else None
                ),
                "location": (
                    {
                        "text": ns.subject.location.text,
                        "coordinates": [ns.subject.location.longitude, ns.subject.location.latitude],
                    }
                    if ns.subject.location
                    else None
                ),
            }
            for ns in subjects
        ],
        "deliveries": [
            {"medium": d.medium, "status": d.status, "sent_at": _iso(d.sent_at)} for d in n.deliveries
        ],
    }


def _serialize_summary(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "status": notification_status(n.deliveries),
        "created_at": _iso(n.created_at),
        "meeting": {"id": n.meeting.id, "name": n.meeting.name, "date": _iso(n.meeting.date_time)},
        "subjects": sorted(ns.subject.name for ns in n.subjects),
        "deliveries": [
            {"medium": d.medium, "status": d.status, "sent_at": _iso(d.sent_at)} for d in n.deliveries
        ],
    }


def _serialize_preference(p: NotificationPreference) -> dict:
    return {
        "id": p.id,
        "city": {"id": p.city.id, "name": p.city.name_municipality or p.city.name},
        "locations": [{"id": loc.id, "text": loc.text} for loc in p.locations],
        "interests": [{"id": t.id, "name": t.name, "color": t.color_hex} for t in p.interests],
        "created_at": _iso(p.created_at),
    }


@router.get("/notifications/{notification_id}", summary="Public view of one notification")
def view_notification(notification_id: str, db: Session = Depends(get_db)):
    notification = get_notification_for_view(db, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    return _serialize_view(notification)


@router.get("/users/{user_id}/notifications", summary="A user's notifications in one city")
def list_user_notifications(
    user_id: str,
    city_id: str,
    limit: int = DEFAULT_USER_NOTIFICATION_LIMIT,
    db: Session = Depends(get_db),
):
    try:
        notifications = get_user_notifications(db, user_id, city_id, limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [_serialize_summary(n) for n in notifications]


@router.get("/users/{user_id}/preferences", summary="A user's city subscriptions")
def list_user_preferences(user_id: str, db: Session = Depends(get_db)):
    return [_serialize_preference(p) for p in get_user_notification_preferences(db, user_id)]


@router.delete("/users/{user_id}/preferences/{preference_id}", summary="Unsubscribe from one city")
def delete_user_preference(user_id: str, preference_id: str, db: Session = Depends(get_db)):
    try:
        delete_notification_preference(db, preference_id, user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"deleted": 1}
