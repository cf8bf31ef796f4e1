"""Subscriber-facing reads: a user's notifications and subscriptions.

These back the public notification page and the user's settings page.
Ownership checks compare ids only; authentication happens upstream.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.db.models import Notification, NotificationPreference
from app.db.repositories import NotificationPreferenceRepository, NotificationRepository

logger = logging.getLogger(__name__)

DEFAULT_USER_NOTIFICATION_LIMIT = 50


def get_user_notifications(
    db: Session,
    user_id: str,
    city_id: str,
    limit: int = DEFAULT_USER_NOTIFICATION_LIMIT,
) -> list[Notification]:
    """Newest notifications of *user_id* in *city_id*, at most *limit*."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    return NotificationRepository(db).list_for_user(user_id, city_id, limit)


def get_notification_for_view(db: Session, notification_id: str) -> Notification | None:
    """One notification with its meeting, city, subjects and deliveries loaded."""
    return NotificationRepository(db).get_with_details(notification_id)


def get_user_notification_preferences(db: Session, user_id: str) -> list[NotificationPreference]:
    return NotificationPreferenceRepository(db).list_for_user(user_id)


def delete_notification_preference(db: Session, preference_id: str, user_id: str) -> None:
    """Unsubscribe *user_id* from one city.

    Raises ``NotFoundError`` when the preference does not exist or belongs
    to another user.  Locations and topics it referenced are kept.
    """
    preferences = NotificationPreferenceRepository(db)
    preference = preferences.get(preference_id)
    if preference is None or preference.user_id != user_id:
        raise NotFoundError("NotificationPreference", preference_id)
    city_id = preference.city_id
    preferences.delete(preference)
    logger.info("User %s unsubscribed from city %s", user_id, city_id)
