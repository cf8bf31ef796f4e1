"""Subject reconciler.

Merges one extraction pass into the persisted ``Subject`` rows of a
meeting.  The pipeline re-produces the full subject list on every pass,
so rows are matched rather than replaced:

- numbered items match on ``(meeting_id, agenda_item_index)`` and are
  updated in place, keeping their id;
- bucket items (``BEFORE_AGENDA`` / ``OUT_OF_AGENDA``) match on
  ``(meeting_id, non_agenda_reason)``, one row per bucket;
- existing rows absent from the pass are never touched, so highlights and
  other curated artifacts pointing at them survive.

Each record is applied inside its own SAVEPOINT; a failing record is
rolled back alone and reported in ``failures``.  The session is flushed
but **not** committed; the caller owns the transaction.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.orm import Session

from app.core.constants import BUCKET_TO_REASON
from app.core.errors import NotFoundError, PartialBatchFailure, SubjectValidationError
from app.db.models import Location, SpeakerContribution, Subject
from app.db.repositories import MeetingRepository, PersonRepository, SubjectRepository, TopicRepository
from app.subjects.schemas import IncomingLocation, IncomingSubject

logger = logging.getLogger(__name__)


class ExistingSubjectKey(Protocol):
    id: str
    agenda_item_index: int | None
    non_agenda_reason: str | None


@dataclass
class UpsertPlan:
    to_update: list[tuple[IncomingSubject, str]] = field(default_factory=list)
    to_create: list[IncomingSubject] = field(default_factory=list)


def categorize_subjects_for_upsert(
    incoming: Sequence[IncomingSubject],
    existing: Sequence[ExistingSubjectKey],
) -> UpsertPlan:
    """Split *incoming* into in-place updates and inserts.

    Existing rows are indexed by agenda index and by bucket.  Rows with
    neither (legacy data) can never match and are left alone.  When the
    same key appears twice in *incoming*, the last occurrence wins.
    """
    by_index: dict[int, str] = {}
    by_bucket: dict[str, str] = {}
    for row in existing:
        if row.agenda_item_index is not None:
            by_index[row.agenda_item_index] = row.id
        elif row.non_agenda_reason is not None:
            by_bucket[row.non_agenda_reason] = row.id

    latest: dict[int | str, IncomingSubject] = {}
    for item in incoming:
        if item.key in latest:
            logger.warning("Duplicate subject key %s in batch; keeping the last occurrence", item.key)
        latest[item.key] = item

    plan = UpsertPlan()
    for item in latest.values():
        bucket = item.bucket
        if bucket is not None:
            existing_id = by_bucket.get(BUCKET_TO_REASON[bucket].value)
        else:
            existing_id = by_index.get(item.agenda_item_index)

        if existing_id is not None:
            plan.to_update.append((item, existing_id))
        else:
            plan.to_create.append(item)
    return plan


class SubjectReconciler:
    """Reconcile extraction passes into persisted subjects for one meeting."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.meetings = MeetingRepository(db_session)
        self.subjects = SubjectRepository(db_session)
        self.topics = TopicRepository(db_session)
        self.people = PersonRepository(db_session)
        self.failures: list[PartialBatchFailure] = []
        self._topic_cache: dict[str, str | None] = {}

    def reconcile(
        self,
        incoming: Sequence[IncomingSubject],
        city_id: str,
        meeting_id: str,
    ) -> dict[int | str, str]:
        """Merge *incoming* into the meeting's subjects.

        Returns a mapping from each reconciled subject's key (agenda index
        or bucket name) to its persisted id.  Records that failed are
        absent from the mapping and listed in ``self.failures``.
        """
        meeting = self.meetings.get_for_city(city_id, meeting_id)
        if meeting is None:
            raise NotFoundError("CouncilMeeting", meeting_id)

        self.failures = []
        self._topic_cache = {}

        existing = self.subjects.list_for_meeting(city_id, meeting_id)
        plan = categorize_subjects_for_upsert(incoming, existing)

        ids_by_key: dict[int | str, str] = {}
        updated = created = 0

        for item, existing_id in plan.to_update:
            subject = self._isolated(item, lambda i=item, e=existing_id: self._update(i, e, city_id))
            if subject is not None:
                ids_by_key[item.key] = subject.id
                updated += 1

        for item in plan.to_create:
            subject = self._isolated(item, lambda i=item: self._create(i, city_id, meeting_id))
            if subject is not None:
                ids_by_key[item.key] = subject.id
                created += 1

        logger.info(
            "Reconciled meeting %s: %d updated, %d created, %d failed, %d untouched",
            meeting_id,
            updated,
            created,
            len(self.failures),
            len(existing) - updated,
        )
        return ids_by_key

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _isolated(self, item: IncomingSubject, apply: Callable[[], Subject]) -> Subject | None:
        try:
            with self.db.begin_nested():
                return apply()
        except Exception as exc:
            logger.exception("Skipping subject %s: %s", item.key, exc)
            self.failures.append(PartialBatchFailure(key=str(item.key), error=str(exc)))
            return None

    def _create(self, item: IncomingSubject, city_id: str, meeting_id: str) -> Subject:
        bucket = item.bucket
        subject = Subject(
            meeting_id=meeting_id,
            city_id=city_id,
            agenda_item_index=None if bucket else item.agenda_item_index,
            non_agenda_reason=BUCKET_TO_REASON[bucket].value if bucket else None,
        )
        self._assign(subject, item, city_id)
        self.db.add(subject)
        self.db.flush()
        return subject

    def _update(self, item: IncomingSubject, existing_id: str, city_id: str) -> Subject:
        subject = self.subjects.get(existing_id)
        if subject is None:
            raise NotFoundError("Subject", existing_id)
        self._assign(subject, item, city_id)
        self.db.flush()
        return subject

    def _assign(self, subject: Subject, item: IncomingSubject, city_id: str) -> None:
        subject.name = item.name
        subject.description = item.description
        subject.context = item.context
        subject.topic_id = self._resolve_topic(item.topic_label)
        subject.person_id = self._resolve_person_or_none(item.introduced_by_person_id, city_id, item.key)
        subject.location_id = self._resolve_location(item.location, subject.location)
        subject.topic_importance = item.topic_importance.value if item.topic_importance else None
        subject.proximity_importance = item.proximity_importance.value if item.proximity_importance else None

        # delete-orphan cascade removes the previous contributions on flush
        subject.speaker_contributions = [
            SpeakerContribution(
                speaker_id=self._resolve_person_or_none(c.speaker_id, city_id, item.key),
                speaker_name=c.speaker_name,
                text=c.text,
                position=position,
            )
            for position, c in enumerate(item.speaker_contributions)
        ]

    def _resolve_topic(self, label: str | None) -> str | None:
        if not label:
            return None
        if label not in self._topic_cache:
            topic = self.topics.get_by_name(label)
            if topic is None:
                logger.warning("Topic label %r not found; leaving topic empty", label)
            self._topic_cache[label] = topic.id if topic else None
        return self._topic_cache[label]

    def _resolve_person(self, person_id: str, city_id: str) -> str:
        person = self.people.get(person_id)
        if person is None or person.city_id != city_id:
            raise SubjectValidationError(f"Person {person_id} not found in city {city_id}")
        return person.id

    def _resolve_person_or_none(self, person_id: str | None, city_id: str, key: int | str) -> str | None:
        if not person_id:
            return None
        try:
            return self._resolve_person(person_id, city_id)
        except SubjectValidationError as exc:
            logger.warning("Subject %s: %s; leaving person empty", key, exc)
            return None

    def _resolve_location(self, incoming: IncomingLocation | None, current: Location | None) -> str | None:
        if incoming is None:
            return None
        if not (-90.0 <= incoming.latitude <= 90.0 and -180.0 <= incoming.longitude <= 180.0):
            raise ValueError(f"Coordinates out of range: {list(incoming.coordinates)}")

        if (
            current is not None
            and current.text == incoming.text
            and current.latitude == incoming.latitude
            and current.longitude == incoming.longitude
        ):
            return current.id

        location = Location(text=incoming.text, latitude=incoming.latitude, longitude=incoming.longitude)
        self.db.add(location)
        self.db.flush()
        return location.id