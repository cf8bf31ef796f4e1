from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, selectinload

from app.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def get(self, entity_id: str) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.flush()


class MeetingRepository(BaseRepository[models.CouncilMeeting]):
    model = models.CouncilMeeting

    def get_for_city(self, city_id: str, meeting_id: str) -> models.CouncilMeeting | None:
        stmt = select(models.CouncilMeeting).where(
            models.CouncilMeeting.id == meeting_id,
            models.CouncilMeeting.city_id == city_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()


class TopicRepository(BaseRepository[models.Topic]):
    model = models.Topic

    def get_by_name(self, name: str) -> models.Topic | None:
        stmt = select(models.Topic).where(models.Topic.name == name)
        return self.db.execute(stmt).scalars().first()


class PersonRepository(BaseRepository[models.Person]):
    model = models.Person


class SubjectRepository(BaseRepository[models.Subject]):
    model = models.Subject

    def list_for_meeting(self, city_id: str, meeting_id: str) -> list[models.Subject]:
        stmt = (
            select(models.Subject)
            .where(
                models.Subject.city_id == city_id,
                models.Subject.meeting_id == meeting_id,
            )
            .order_by(models.Subject.agenda_item_index.asc(), models.Subject.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())


class NotificationPreferenceRepository(BaseRepository[models.NotificationPreference]):
    model = models.NotificationPreference

    def list_for_city(self, city_id: str) -> list[models.NotificationPreference]:
        stmt = (
            select(models.NotificationPreference)
            .where(models.NotificationPreference.city_id == city_id)
            .options(
                selectinload(models.NotificationPreference.user),
                selectinload(models.NotificationPreference.locations),
                selectinload(models.NotificationPreference.interests),
            )
            .order_by(models.NotificationPreference.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_user(self, user_id: str) -> list[models.NotificationPreference]:
        stmt = (
            select(models.NotificationPreference)
            .where(models.NotificationPreference.user_id == user_id)
            .options(
                joinedload(models.NotificationPreference.city),
                selectinload(models.NotificationPreference.locations),
                selectinload(models.NotificationPreference.interests),
            )
            .order_by(models.NotificationPreference.created_at.desc(), models.NotificationPreference.id.asc())
        )
        return list(self.db.execute(stmt).unique().scalars().all())


class NotificationRepository(BaseRepository[models.Notification]):
    model = models.Notification

    def find_existing(self, user_id: str, meeting_id: str, notification_type: str) -> models.Notification | None:
        stmt = select(models.Notification).where(
            models.Notification.user_id == user_id,
            models.Notification.meeting_id == meeting_id,
            models.Notification.type == notification_type,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_user(self, user_id: str, city_id: str, limit: int) -> list[models.Notification]:
        stmt = (
            select(models.Notification)
            .where(models.Notification.user_id == user_id, models.Notification.city_id == city_id)
            .options(
                joinedload(models.Notification.meeting),
                selectinload(models.Notification.subjects).joinedload(models.NotificationSubject.subject),
                selectinload(models.Notification.deliveries),
            )
            .order_by(models.Notification.created_at.desc(), models.Notification.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def get_with_details(self, notification_id: str) -> models.Notification | None:
        stmt = (
            select(models.Notification)
            .where(models.Notification.id == notification_id)
            .options(
                joinedload(models.Notification.user),
                joinedload(models.Notification.city),
                joinedload(models.Notification.meeting),
                selectinload(models.Notification.subjects)
                .joinedload(models.NotificationSubject.subject)
                .options(
                    joinedload(models.Subject.topic),
                    joinedload(models.Subject.location),
                ),
                selectinload(models.Notification.deliveries),
            )
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()
