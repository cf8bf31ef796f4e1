"""Admin notification dashboard routes.

Recipient addresses are masked in every response.
"""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from app.admin.deletion import DeletionService, MeetingTarget
from app.admin.queries import AdminFilters, AdminQueryService, notification_status
from app.api.deps import get_admin_queries, get_deletion_service
from app.db.models import Notification

router = APIRouter(prefix="/admin/notifications", tags=["admin"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class TargetBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meeting_id: str = Field(alias="meetingId")
    city_id: str = Field(alias="cityId")


class BulkDeleteBody(BaseModel):
    targets: list[TargetBody]
    type: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mask_email(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def _mask_phone(phone: str | None) -> str | None:
    return f"***{phone[-4:]}" if phone else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _serialize_notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "status": notification_status(n.deliveries),
        "created_at": _iso(n.created_at),
        "user": {"id": n.user.id, "name": n.user.name, "email": _mask_email(n.user.email)},
        "deliveries": [
            {
                "id": d.id,
                "medium": d.medium,
                "status": d.status,
                "email": _mask_email(d.email),
                "phone": _mask_phone(d.phone),
                "message_sent_via": d.message_sent_via,
                "sent_at": _iso(d.sent_at),
                "created_at": _iso(d.created_at),
            }
            for d in n.deliveries
        ],
        "subjects": [
            {"subject_id": ns.subject_id, "name": ns.subject.name, "reason": ns.reason}
            for ns in n.subjects
        ],
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("", summary="Notifications grouped by meeting")
def list_grouped(
    city_id: str | None = None,
    status: str | None = None,
    type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    page_size: int | None = None,
    queries: AdminQueryService = Depends(get_admin_queries),
):
    filters = AdminFilters(
        city_id=city_id,
        status=status,
        type=type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    try:
        result = queries.get_notifications_grouped_by_meeting(filters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    for meeting in result["meetings"]:
        meeting["meeting_date"] = _iso(meeting["meeting_date"])
    return result


@router.get("/cities", summary="Cities that have notifications")
def list_cities(queries: AdminQueryService = Depends(get_admin_queries)):
    return queries.get_cities_with_notifications()


@router.get("/meetings/{city_id}/{meeting_id}", summary="Notifications of one meeting")
def list_for_meeting(
    city_id: str,
    meeting_id: str,
    type: str | None = None,
    queries: AdminQueryService = Depends(get_admin_queries),
):
    try:
        notifications = queries.get_notifications_for_meeting(meeting_id, city_id, type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [_serialize_notification(n) for n in notifications]


@router.post("/bulk-delete", summary="Delete notifications of several meetings")
def bulk_delete(body: BulkDeleteBody, deletion: DeletionService = Depends(get_deletion_service)):
    targets = [MeetingTarget(meeting_id=t.meeting_id, city_id=t.city_id) for t in body.targets]
    try:
        deleted = deletion.delete_notifications_for_meetings(targets, body.type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"deleted": deleted}


@router.delete("/{notification_id}", summary="Delete one notification")
def delete_one(notification_id: str, deletion: DeletionService = Depends(get_deletion_service)):
    if not deletion.delete_notification(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    return {"deleted": 1}
