"""Transport hooks: poll pending deliveries and report send outcomes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.errors import NotFoundError
from app.db.models import NotificationDelivery
from app.notification.deliveries import get_pending_deliveries, update_delivery_status

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


class StatusBody(BaseModel):
    status: str
    message_sent_via: str | None = None


def _serialize_delivery(d: NotificationDelivery) -> dict:
    # The sender needs real addresses; this route is not exposed to the admin UI.
    return {
        "id": d.id,
        "notification_id": d.notification_id,
        "medium": d.medium,
        "status": d.status,
        "email": d.email,
        "phone": d.phone,
        "title": d.title,
        "body": d.body,
        "message_sent_via": d.message_sent_via,
        "sent_at": d.sent_at.isoformat() if d.sent_at else None,
    }


@router.get("/pending", summary="Pending deliveries of the given notifications")
def list_pending(
    notification_id: list[str] = Query(default=[]),
    db: Session = Depends(get_db),
):
    return [_serialize_delivery(d) for d in get_pending_deliveries(db, notification_id)]


@router.post("/{delivery_id}/status", summary="Record the outcome of a send attempt")
def set_status(delivery_id: str, body: StatusBody, db: Session = Depends(get_db)):
    try:
        delivery = update_delivery_status(db, delivery_id, body.status, body.message_sent_via)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_delivery(delivery)
