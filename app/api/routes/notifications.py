"""Notification creation and impact preview for one meeting."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_notification_builder
from app.core.constants import NotificationType, ProximityImportance, TopicImportance
from app.core.errors import NotFoundError
from app.notification.builder import NotificationBuilder
from app.notification.matching import ImportanceOverride

router = APIRouter(prefix="/cities/{city_id}/meetings/{meeting_id}/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ImportanceBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic_importance: TopicImportance = Field(alias="topicImportance")
    proximity_importance: ProximityImportance = Field(
        default=ProximityImportance.NONE, alias="proximityImportance"
    )


class PreviewBody(BaseModel):
    overrides: dict[str, ImportanceBody] | None = None

    def importance_overrides(self) -> dict[str, ImportanceOverride] | None:
        if self.overrides is None:
            return None
        return {
            subject_id: ImportanceOverride(
                topic_importance=body.topic_importance,
                proximity_importance=body.proximity_importance,
            )
            for subject_id, body in self.overrides.items()
        }


class CreateNotificationsBody(PreviewBody):
    type: NotificationType


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("", summary="Create notifications for a meeting")
def create_notifications(
    city_id: str,
    meeting_id: str,
    body: CreateNotificationsBody,
    builder: NotificationBuilder = Depends(get_notification_builder),
):
    try:
        result = builder.create_notifications_for_meeting(
            city_id, meeting_id, body.type, body.importance_overrides()
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {
        "notifications_created": result.notifications_created,
        "subjects_total": result.subjects_total,
        "notification_ids": result.notification_ids,
        "failures": [{"key": f.key, "error": f.error} for f in result.failures],
    }


@router.post("/preview", summary="Count users each subject would reach")
def preview_notifications(
    city_id: str,
    meeting_id: str,
    body: PreviewBody,
    builder: NotificationBuilder = Depends(get_notification_builder),
):
    try:
        return builder.preview(city_id, meeting_id, body.importance_overrides())
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
