"""Notification builder.

Turns the match result for one meeting into persisted rows:

1. one ``Notification`` per matched user, upserted on
   ``(user_id, meeting_id, type)``;
2. one ``NotificationSubject`` per ``(subject, reason)`` in the user's
   match set;
3. ``pending`` deliveries: ``email`` when the user has a usable address,
   plus ``message`` when the user has a phone number that normalizes.
   A user with neither is recorded as a failure, not notified.

Re-running for the same meeting and type reuses every existing row, so
the builder is idempotent.  Each user is processed inside its own
SAVEPOINT; one failing user is rolled back alone and reported in
``BuildResult.failures``.  Flushes but does **not** commit.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.constants import DeliveryMedium, DeliveryStatus, NotificationType
from app.core.errors import NotFoundError, PartialBatchFailure
from app.db.models import (
    CouncilMeeting,
    Notification,
    NotificationDelivery,
    NotificationSubject,
    Subject,
    User,
)
from app.db.repositories import (
    MeetingRepository,
    NotificationPreferenceRepository,
    NotificationRepository,
    SubjectRepository,
)
from app.normalization import normalize_email, normalize_phone
from app.notification.content import (
    ContentSubject,
    NotificationContext,
    generate_email_content,
    generate_sms_content,
)
from app.notification.matching import (
    ImportanceOverride,
    MatchEngine,
    SubjectMatch,
    calculate_notification_impact,
    stored_importances,
    subjects_for_matching,
    users_from_preferences,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Aggregate outcome of one builder run.

    ``notifications_created`` counts notifications created or reused;
    ``subjects_total`` is the sum (not distinct) of subject matches.
    """

    notifications_created: int = 0
    subjects_total: int = 0
    notification_ids: list[str] = field(default_factory=list)
    failures: list[PartialBatchFailure] = field(default_factory=list)


class NotificationBuilder:
    def __init__(self, db_session: Session, engine: MatchEngine | None = None) -> None:
        self.db = db_session
        self.engine = engine or MatchEngine()
        self.meetings = MeetingRepository(db_session)
        self.subjects = SubjectRepository(db_session)
        self.preferences = NotificationPreferenceRepository(db_session)
        self.notifications = NotificationRepository(db_session)

    def create_notifications_for_meeting(
        self,
        city_id: str,
        meeting_id: str,
        notification_type: NotificationType | str,
        overrides: Mapping[str, ImportanceOverride] | None = None,
    ) -> BuildResult:
        """Create (or complete) the notifications of *meeting_id*.

        When *overrides* is ``None`` each subject's stored importance is
        used.  Raises ``NotFoundError`` if the meeting does not exist in
        the city and ``ValueError`` for an unknown notification type.
        """
        notification_type = NotificationType(notification_type)
        meeting = self.meetings.get_for_city(city_id, meeting_id)
        if meeting is None:
            raise NotFoundError("CouncilMeeting", meeting_id)

        subjects = self.subjects.list_for_meeting(city_id, meeting_id)
        preferences = self.preferences.list_for_city(city_id)
        users = {pref.user_id: pref.user for pref in preferences}

        if overrides is None:
            overrides = stored_importances(subjects)

        matches = self.engine.match(
            subjects_for_matching(subjects),
            users_from_preferences(preferences),
            overrides,
        )

        result = BuildResult()
        new_count = 0
        for user_id in sorted(matches):
            user_matches = matches[user_id]
            try:
                with self.db.begin_nested():
                    notification, created = self._upsert_notification(
                        user_id, city_id, meeting_id, notification_type
                    )
                    self._attach_subjects(notification, user_matches)
                    self._ensure_deliveries(notification, users[user_id], meeting, subjects)
            except Exception as exc:
                logger.exception("Skipping notification for user %s: %s", user_id, exc)
                result.failures.append(PartialBatchFailure(key=user_id, error=str(exc)))
                continue

            result.notification_ids.append(notification.id)
            result.notifications_created += 1
            result.subjects_total += len(user_matches)
            new_count += int(created)

        logger.info(
            "Meeting %s (%s): %d notifications (%d new, %d failed), %d subject matches",
            meeting_id,
            notification_type.value,
            result.notifications_created,
            new_count,
            len(result.failures),
            result.subjects_total,
        )
        return result

    def preview(
        self,
        city_id: str,
        meeting_id: str,
        overrides: Mapping[str, ImportanceOverride] | None = None,
    ) -> dict:
        """Impact of notifying *meeting_id* without writing anything."""
        if self.meetings.get_for_city(city_id, meeting_id) is None:
            raise NotFoundError("CouncilMeeting", meeting_id)
        subjects = self.subjects.list_for_meeting(city_id, meeting_id)
        if overrides is None:
            overrides = stored_importances(subjects)
        return calculate_notification_impact(
            subjects_for_matching(subjects),
            users_from_preferences(self.preferences.list_for_city(city_id)),
            overrides,
            engine=self.engine,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _upsert_notification(
        self,
        user_id: str,
        city_id: str,
        meeting_id: str,
        notification_type: NotificationType,
    ) -> tuple[Notification, bool]:
        existing = self.notifications.find_existing(user_id, meeting_id, notification_type.value)
        if existing is not None:
            return existing, False

        notification = Notification(
            user_id=user_id,
            city_id=city_id,
            meeting_id=meeting_id,
            type=notification_type.value,
        )
        try:
            with self.db.begin_nested():
                self.db.add(notification)
                self.db.flush()
        except IntegrityError:
            # A concurrent run inserted the same key first.
            existing = self.notifications.find_existing(user_id, meeting_id, notification_type.value)
            if existing is None:
                raise
            logger.info("Notification for user %s already exists; reusing it", user_id)
            return existing, False
        return notification, True

    def _attach_subjects(self, notification: Notification, user_matches: set[SubjectMatch]) -> None:
        present = {(ns.subject_id, ns.reason) for ns in notification.subjects}
        for match in sorted(user_matches, key=lambda m: (m.subject_id, m.reason.value)):
            if (match.subject_id, match.reason.value) in present:
                continue
            notification.subjects.append(
                NotificationSubject(subject_id=match.subject_id, reason=match.reason.value)
            )
        self.db.flush()

    def _ensure_deliveries(
        self,
        notification: Notification,
        user: User,
        meeting: CouncilMeeting,
        subjects: list[Subject],
    ) -> None:
        ctx = _build_context(notification, meeting, subjects)
        title, html_body = generate_email_content(ctx)
        sms_body = generate_sms_content(ctx)

        by_medium = {d.medium: d for d in notification.deliveries}

        email = normalize_email(user.email)
        if email is None:
            logger.warning("User %s has no usable email; no email delivery", user.id)
        elif DeliveryMedium.EMAIL.value in by_medium:
            _refresh_pending(by_medium[DeliveryMedium.EMAIL.value], title=title, body=html_body)
        else:
            notification.deliveries.append(
                NotificationDelivery(
                    medium=DeliveryMedium.EMAIL.value,
                    status=DeliveryStatus.PENDING.value,
                    email=email,
                    title=title,
                    body=html_body,
                )
            )

        phone = normalize_phone(user.phone)
        if user.phone and phone is None:
            logger.warning("User %s has an unusable phone number; no message delivery", user.id)
        elif phone is not None:
            if DeliveryMedium.MESSAGE.value in by_medium:
                _refresh_pending(by_medium[DeliveryMedium.MESSAGE.value], body=sms_body)
            else:
                notification.deliveries.append(
                    NotificationDelivery(
                        medium=DeliveryMedium.MESSAGE.value,
                        status=DeliveryStatus.PENDING.value,
                        phone=phone,
                        body=sms_body,
                    )
                )
        if not notification.deliveries:
            raise ValueError(f"User {user.id} has no usable email or phone number")
        self.db.flush()


def _refresh_pending(delivery: NotificationDelivery, **content: str) -> None:
    # Only unsent deliveries pick up newly matched subjects.
    if delivery.status != DeliveryStatus.PENDING.value:
        return
    for key, value in content.items():
        setattr(delivery, key, value)


def _build_context(
    notification: Notification,
    meeting: CouncilMeeting,
    subjects: list[Subject],
) -> NotificationContext:
    notified = {ns.subject_id for ns in notification.subjects}
    city = meeting.city
    return NotificationContext(
        notification_id=notification.id,
        type=NotificationType(notification.type),
        city_name=city.name_municipality or city.name,
        meeting_date=meeting.date_time,
        administrative_body_name=meeting.administrative_body_name,
        subjects=tuple(
            ContentSubject(
                id=s.id,
                name=s.name,
                description=s.description,
                topic_name=s.topic.name if s.topic else None,
                topic_color=s.topic.color_hex if s.topic else None,
            )
            for s in subjects
            if s.id in notified
        ),
    )
