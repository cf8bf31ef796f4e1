"""Admin dashboard queries.

Notifications are shown grouped by meeting.  Each group carries separate
``before`` and ``after`` aggregates (``None`` when no notification of
that type exists) with per-status counts.  A notification's status is
derived from its deliveries: ``pending`` if any delivery is pending, else
``failed`` if any failed, else ``sent``.

Pagination runs over meeting groups, not over notification rows.  Read
queries never raise for "no results".
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.constants import (
    VALID_DELIVERY_STATUSES,
    VALID_NOTIFICATION_TYPES,
    DeliveryStatus,
    NotificationType,
)
from app.core.settings import get_settings
from app.db.models import City, CouncilMeeting, Notification, NotificationDelivery, NotificationSubject

logger = logging.getLogger(__name__)

_TYPE_KEYS = {
    NotificationType.BEFORE_MEETING.value: "before",
    NotificationType.AFTER_MEETING.value: "after",
}


@dataclass
class AdminFilters:
    city_id: str | None = None
    status: str | None = None
    type: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = 1
    page_size: int | None = None

    def validate(self) -> None:
        if self.status is not None and self.status not in VALID_DELIVERY_STATUSES:
            raise ValueError(f"Invalid status: {self.status!r}")
        if self.type is not None and self.type not in VALID_NOTIFICATION_TYPES:
            raise ValueError(f"Invalid notification type: {self.type!r}")
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size is not None and self.page_size < 1:
            raise ValueError("page_size must be >= 1")


def notification_status(deliveries: list[NotificationDelivery]) -> str:
    statuses = {d.status for d in deliveries}
    if DeliveryStatus.PENDING.value in statuses:
        return DeliveryStatus.PENDING.value
    if DeliveryStatus.FAILED.value in statuses:
        return DeliveryStatus.FAILED.value
    return DeliveryStatus.SENT.value


def _empty_counts() -> dict[str, int]:
    return {"pending": 0, "sent": 0, "failed": 0, "total": 0}


class AdminQueryService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # ------------------------------------------------------------------
    # Grouped listing
    # ------------------------------------------------------------------

    def get_notifications_grouped_by_meeting(self, filters: AdminFilters | None = None) -> dict:
        """Return ``{"meetings": [...], "pagination": {...}}``.

        Without a ``start_date`` the window opens at ``now - 30 d``
        (configurable); without an ``end_date`` it has no upper bound, so
        every scheduled meeting is listed.  Groups are ordered by meeting date, newest first.
        """
        filters = filters or AdminFilters()
        filters.validate()
        settings = get_settings()
        page_size = filters.page_size or settings.admin_page_size

        now = datetime.now(timezone.utc)
        start = filters.start_date or now - timedelta(days=settings.admin_lookback_days)
        conditions = self._conditions(filters, start, filters.end_date)

        groups_stmt = (
            select(Notification.meeting_id, Notification.city_id, CouncilMeeting.date_time)
            .join(CouncilMeeting, CouncilMeeting.id == Notification.meeting_id)
            .where(*conditions)
            .distinct()
        )
        total = self.db.execute(select(func.count()).select_from(groups_stmt.subquery())).scalar_one()

        page_rows = self.db.execute(
            groups_stmt.order_by(CouncilMeeting.date_time.desc(), Notification.meeting_id.asc())
            .offset((filters.page - 1) * page_size)
            .limit(page_size)
        ).all()

        pagination = {
            "total": total,
            "page": filters.page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }
        if not page_rows:
            return {"meetings": [], "pagination": pagination}

        keys = [(row.meeting_id, row.city_id) for row in page_rows]
        stmt = (
            select(Notification)
            .join(CouncilMeeting, CouncilMeeting.id == Notification.meeting_id)
            .where(
                or_(*(and_(Notification.meeting_id == m, Notification.city_id == c) for m, c in keys)),
                *conditions,
            )
            .options(
                joinedload(Notification.meeting),
                joinedload(Notification.city),
                selectinload(Notification.deliveries),
            )
        )
        notifications = self.db.execute(stmt).unique().scalars().all()

        groups: dict[tuple[str, str], dict] = {}
        for n in notifications:
            group = groups.get((n.meeting_id, n.city_id))
            if group is None:
                group = groups[(n.meeting_id, n.city_id)] = {
                    "meeting_id": n.meeting_id,
                    "meeting_name": n.meeting.name,
                    "meeting_date": n.meeting.date_time,
                    "city_id": n.city_id,
                    "city_name": n.city.name_municipality or n.city.name,
                    "administrative_body_name": n.meeting.administrative_body_name,
                    "before": None,
                    "after": None,
                }
            type_key = _TYPE_KEYS[n.type]
            counts = group[type_key]
            if counts is None:
                counts = group[type_key] = _empty_counts()
            counts[notification_status(n.deliveries)] += 1
            counts["total"] += 1

        meetings = [groups[key] for key in keys if key in groups]
        logger.debug("Admin listing: %d of %d meeting groups", len(meetings), total)
        return {"meetings": meetings, "pagination": pagination}

    @staticmethod
    def _conditions(filters: AdminFilters, start: datetime, end: datetime | None) -> list:
        conditions = [CouncilMeeting.date_time >= start]
        if end is not None:
            conditions.append(CouncilMeeting.date_time <= end)
        if filters.city_id:
            conditions.append(Notification.city_id == filters.city_id)
        if filters.type:
            conditions.append(Notification.type == filters.type)
        if filters.status:
            conditions.append(Notification.deliveries.any(NotificationDelivery.status == filters.status))
        return conditions

    # ------------------------------------------------------------------
    # Row expansion and filter options
    # ------------------------------------------------------------------

    def get_notifications_for_meeting(
        self,
        meeting_id: str,
        city_id: str,
        notification_type: str | None = None,
    ) -> list[Notification]:
        """All notifications of one meeting with user, deliveries and matched subjects."""
        if notification_type is not None and notification_type not in VALID_NOTIFICATION_TYPES:
            raise ValueError(f"Invalid notification type: {notification_type!r}")

        stmt = (
            select(Notification)
            .where(Notification.meeting_id == meeting_id, Notification.city_id == city_id)
            .options(
                joinedload(Notification.user),
                selectinload(Notification.deliveries),
                selectinload(Notification.subjects).joinedload(NotificationSubject.subject),
            )
            .order_by(Notification.created_at.desc(), Notification.id.asc())
        )
        if notification_type:
            stmt = stmt.where(Notification.type == notification_type)
        return list(self.db.execute(stmt).unique().scalars().all())

    def get_cities_with_notifications(self) -> list[dict]:
        """Cities that have at least one notification, for the filter dropdown."""
        stmt = (
            select(City)
            .where(City.id.in_(select(Notification.city_id).distinct()))
            .order_by(City.name.asc())
        )
        return [
            {"id": city.id, "name": city.name_municipality or city.name}
            for city in self.db.execute(stmt).scalars().all()
        ]
