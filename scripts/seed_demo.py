#!/usr/bin/env python3
"""Seed demo data: one city, an upcoming meeting, subscribers and notifications.

Runs a sample extraction pass through the reconciler and then builds the
``beforeMeeting`` notifications, so the admin dashboard has something
to show.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

# Ensure project root is on sys.path
sys.path.insert(0, ".")

from app.core.constants import NotificationType
from app.db.base import Base
from app.db.models import City, CouncilMeeting, Location, NotificationPreference, Person, Topic, User
from app.db.session import get_engine, session_scope
from app.notification.builder import NotificationBuilder
from app.subjects.reconciler import SubjectReconciler
from app.subjects.schemas import IncomingSubject

# Syntagma Square and two points roughly 200 m and 800 m north of it
SYNTAGMA = (37.9755, 23.7348)
NEAR_SYNTAGMA = (37.9773, 23.7348)
FAR_FROM_SYNTAGMA = (37.9827, 23.7348)


def seed(session: Session) -> None:
    """Insert demo reference data, reconcile one pass and build notifications."""
    now = datetime.now(timezone.utc)

    city = City(name="Athens", name_municipality="Municipality of Athens")
    session.add(city)
    session.flush()

    meeting = CouncilMeeting(
        city_id=city.id,
        name="Regular session",
        date_time=now + timedelta(days=7),
        administrative_body_name="City Council",
    )
    mayor = Person(city_id=city.id, name="Demo Mayor")
    topics = {
        name: Topic(name=name, name_en=name, color_hex=color)
        for name, color in [("Transport", "#1f77b4"), ("Environment", "#2ca02c"), ("Culture", "#9467bd")]
    }
    session.add_all([meeting, mayor, *topics.values()])
    session.flush()

    demo_users = [
        # (name, email, phone, home, interests)
        ("Eleni", "eleni@example.gr", "6912345678", None, ["Transport"]),
        ("Nikos", "nikos@example.gr", None, NEAR_SYNTAGMA, []),
        ("Maria", "maria@example.gr", "+306987654321", FAR_FROM_SYNTAGMA, ["Culture"]),
        ("Giorgos", "giorgos@example.gr", None, None, []),
    ]
    for name, email, phone, home, interests in demo_users:
        user = User(name=name, email=email, phone=phone)
        session.add(user)
        session.flush()
        pref = NotificationPreference(user_id=user.id, city_id=city.id)
        if home is not None:
            pref.locations.append(Location(text=f"{name}'s neighbourhood", latitude=home[0], longitude=home[1]))
        pref.interests.extend(topics[t] for t in interests)
        session.add(pref)
    session.flush()

    incoming = [
        IncomingSubject(
            name="New bus lanes on Vasilissis Amalias",
            description="Approval of the study for dedicated bus lanes.",
            agenda_item_index=1,
            topic_label="Transport",
            introduced_by_person_id=mayor.id,
            proximity_importance="near",
            location={"text": "Syntagma Square", "coordinates": [SYNTAGMA[1], SYNTAGMA[0]]},
        ),
        IncomingSubject(
            name="Heatwave response plan",
            description="Opening of cooling centres across the city.",
            agenda_item_index=2,
            topic_label="Environment",
            topic_importance="high",
        ),
        IncomingSubject(
            name="Announcements",
            description="Questions from council members before the agenda.",
            agenda_item_index="BEFORE_AGENDA",
        ),
    ]
    reconciler = SubjectReconciler(session)
    ids_by_key = reconciler.reconcile(incoming, city.id, meeting.id)

    result = NotificationBuilder(session).create_notifications_for_meeting(
        city.id, meeting.id, NotificationType.BEFORE_MEETING
    )

    print(
        f"Seeded {len(ids_by_key)} subjects, {len(demo_users)} users, "
        f"{result.notifications_created} notifications ({result.subjects_total} subject matches)."
    )


def main() -> None:
    Base.metadata.create_all(get_engine())

    with session_scope() as session:
        seed(session)


if __name__ == "__main__":
    main()
