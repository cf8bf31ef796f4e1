from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text as sql_text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def _new_id() -> str:
    return str(uuid4())


class City(Base):
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    name_municipality: Mapped[str | None] = mapped_column(String(256), nullable=True)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default="Europe/Athens", server_default=sql_text("'Europe/Athens'")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    meetings: Mapped[list[CouncilMeeting]] = relationship(back_populates="city")


class CouncilMeeting(Base):
    __tablename__ = "council_meetings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    date_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    administrative_body_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    city: Mapped[City] = relationship(back_populates="meetings")
    subjects: Mapped[list[Subject]] = relationship(back_populates="meeting")


class Topic(Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    name_en: Mapped[str | None] = mapped_column(String(256), nullable=True)
    color_hex: Mapped[str] = mapped_column(
        String(16), nullable=False, default="#888888", server_default=sql_text("'#888888'")
    )


class Person(Base):
    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)


class Location(Base):
    """Named WGS84 point.  Owned by the geocoding side; read-only for matching."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    text: Mapped[str] = mapped_column(String(512), nullable=False, default="", server_default=sql_text("''"))
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)


class Subject(Base):
    """One agenda item (or sentinel bucket) of a council meeting.

    Numbered items are unique per ``(meeting_id, agenda_item_index)``;
    bucket items (before / outside the agenda) are unique per
    ``(meeting_id, non_agenda_reason)``.  NULLs never collide, so the two
    partitions are independent.
    """

    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("meeting_id", "agenda_item_index", name="uq_subjects_meeting_agenda_item"),
        UniqueConstraint("meeting_id", "non_agenda_reason", name="uq_subjects_meeting_non_agenda_reason"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    meeting_id: Mapped[str] = mapped_column(
        ForeignKey("council_meetings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default=sql_text("''"))
    agenda_item_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    non_agenda_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    topic_id: Mapped[str | None] = mapped_column(ForeignKey("topics.id", ondelete="SET NULL"), nullable=True)
    location_id: Mapped[str | None] = mapped_column(ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    person_id: Mapped[str | None] = mapped_column(ForeignKey("persons.id", ondelete="SET NULL"), nullable=True)
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    topic_importance: Mapped[str | None] = mapped_column(String(16), nullable=True)
    proximity_importance: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    meeting: Mapped[CouncilMeeting] = relationship(back_populates="subjects")
    topic: Mapped[Topic | None] = relationship()
    location: Mapped[Location | None] = relationship()
    introduced_by: Mapped[Person | None] = relationship()
    speaker_contributions: Mapped[list[SpeakerContribution]] = relationship(
        back_populates="subject", cascade="all, delete-orphan", order_by="SpeakerContribution.position"
    )


class SpeakerContribution(Base):
    __tablename__ = "speaker_contributions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    speaker_id: Mapped[str | None] = mapped_column(ForeignKey("persons.id", ondelete="SET NULL"), nullable=True)
    speaker_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=sql_text("0"))

    subject: Mapped[Subject] = relationship(back_populates="speaker_contributions")


class Highlight(Base):
    """Manually curated clip; may reference a subject and must outlive re-extraction."""

    __tablename__ = "highlights"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    meeting_id: Mapped[str] = mapped_column(ForeignKey("council_meetings.id", ondelete="CASCADE"), nullable=False)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    notification_preferences: Mapped[list[NotificationPreference]] = relationship(back_populates="user")


notification_preference_locations = Table(
    "notification_preference_locations",
    Base.metadata,
    Column(
        "notification_preference_id",
        ForeignKey("notification_preferences.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("location_id", ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True),
)

notification_preference_interests = Table(
    "notification_preference_interests",
    Base.metadata,
    Column(
        "notification_preference_id",
        ForeignKey("notification_preferences.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("topic_id", ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True),
)


class NotificationPreference(Base):
    """A user's subscription to one city: areas of interest plus topics."""

    __tablename__ = "notification_preferences"
    __table_args__ = (UniqueConstraint("user_id", "city_id", name="uq_notification_preferences_user_city"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user: Mapped[User] = relationship(back_populates="notification_preferences")
    city: Mapped[City] = relationship()
    locations: Mapped[list[Location]] = relationship(secondary=notification_preference_locations)
    interests: Mapped[list[Topic]] = relationship(secondary=notification_preference_interests)


class Notification(Base):
    """One user's bundle of matched subjects for one meeting and phase."""

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "meeting_id", "type", name="uq_notifications_user_meeting_type"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    meeting_id: Mapped[str] = mapped_column(
        ForeignKey("council_meetings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user: Mapped[User] = relationship()
    city: Mapped[City] = relationship()
    meeting: Mapped[CouncilMeeting] = relationship()
    subjects: Mapped[list[NotificationSubject]] = relationship(
        back_populates="notification", cascade="all, delete-orphan"
    )
    deliveries: Mapped[list[NotificationDelivery]] = relationship(
        back_populates="notification", cascade="all, delete-orphan"
    )


class NotificationSubject(Base):
    __tablename__ = "notification_subjects"
    __table_args__ = (
        UniqueConstraint(
            "notification_id", "subject_id", "reason", name="uq_notification_subjects_notification_subject_reason"
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    notification_id: Mapped[str] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    notification: Mapped[Notification] = relationship(back_populates="subjects")
    subject: Mapped[Subject] = relationship()


class NotificationDelivery(Base):
    """One medium-specific attempt to reach a user.

    Created ``pending`` by the notification builder; the transport layer
    moves it to ``sent`` or ``failed``.
    """

    __tablename__ = "notification_deliveries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    notification_id: Mapped[str] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    medium: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending", server_default=sql_text("'pending'"), index=True
    )
    email: Mapped[str | None] = mapped_column(String(512), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_sent_via: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    notification: Mapped[Notification] = relationship(back_populates="deliveries")
