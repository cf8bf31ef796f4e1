"""Bulk and single deletion of notifications.

Child ``NotificationSubject`` and ``NotificationDelivery`` rows go with
their notification through the ORM ``delete-orphan`` cascade.  Deleting
targets that match nothing returns 0; it is not an error.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload

from app.core.constants import VALID_NOTIFICATION_TYPES
from app.db.models import Notification
from app.db.repositories import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeetingTarget:
    meeting_id: str
    city_id: str


class DeletionService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.notifications = NotificationRepository(db_session)

    def delete_notifications_for_meetings(
        self,
        targets: Sequence[MeetingTarget],
        notification_type: str | None = None,
    ) -> int:
        """Delete notifications of every ``(meeting_id, city_id)`` target.

        *notification_type* restricts deletion to that type and leaves the
        other type's notifications untouched.  Returns the number of
        ``Notification`` rows deleted.
        """
        if notification_type is not None and notification_type not in VALID_NOTIFICATION_TYPES:
            raise ValueError(f"Invalid notification type: {notification_type!r}")
        if not targets:
            return 0

        stmt = (
            select(Notification)
            .where(or_(*(and_(Notification.meeting_id == t.meeting_id, Notification.city_id == t.city_id)
                         for t in targets)))
            .options(selectinload(Notification.subjects), selectinload(Notification.deliveries))
        )
        if notification_type:
            stmt = stmt.where(Notification.type == notification_type)

        notifications = list(self.db.execute(stmt).scalars().all())
        for notification in notifications:
            self.db.delete(notification)
        self.db.flush()

        logger.info(
            "Deleted %d notifications across %d meetings (type=%s)",
            len(notifications),
            len(targets),
            notification_type or "any",
        )
        return len(notifications)

    def delete_notification(self, notification_id: str) -> bool:
        """Delete one notification; ``False`` if it does not exist."""
        notification = self.notifications.get(notification_id)
        if notification is None:
            return False
        self.notifications.delete(notification)
        logger.info("Deleted notification %s", notification_id)
        return True
