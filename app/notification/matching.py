"""Subject-to-user matching.

Decides, per meeting, which subscribed users hear about which subjects
and why.  Three independent reasons can apply to the same
``(user, subject)`` pair and each one is recorded:

- ``generalInterest``: topic importance ``high``; every user matches.
- ``topic``: topic importance ``normal`` and the user follows the topic.
- ``proximity``: proximity importance ``near`` / ``wide`` and one of the
  user's locations lies within the radius of the subject's location.

Distances are geodesic on the WGS84 ellipsoid (``geopy``); radii come
from settings (``near`` 400 m, ``wide`` 1500 m by default).
Some subject points arrive with latitude and longitude swapped; a point
that falls outside the service area but lands inside it once swapped is
matched on the swapped coordinates.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from geopy.distance import geodesic

from app.core.constants import MatchReason, ProximityImportance, TopicImportance
from app.core.settings import get_settings
from app.db.models import Location, NotificationPreference, Subject

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    @classmethod
    def from_location(cls, location: Location) -> GeoPoint:
        return cls(latitude=location.latitude, longitude=location.longitude)


@dataclass(frozen=True)
class MatchableSubject:
    id: str
    topic_id: str | None = None
    location: GeoPoint | None = None


@dataclass
class UserPreferences:
    user_id: str
    locations: list[GeoPoint] = field(default_factory=list)
    interest_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ImportanceOverride:
    topic_importance: TopicImportance
    proximity_importance: ProximityImportance = ProximityImportance.NONE


@dataclass(frozen=True)
class SubjectMatch:
    """One reason why a subject concerns a user."""

    subject_id: str
    reason: MatchReason


def in_service_area(point: GeoPoint) -> bool:
    settings = get_settings()
    return (
        settings.service_area_min_lat <= point.latitude <= settings.service_area_max_lat
        and settings.service_area_min_lng <= point.longitude <= settings.service_area_max_lng
    )


def corrected_point(point: GeoPoint) -> GeoPoint:
    """Return *point* with latitude and longitude swapped if only the swap is in the service area."""
    if in_service_area(point):
        return point
    swapped = GeoPoint(latitude=point.longitude, longitude=point.latitude)
    if in_service_area(swapped):
        logger.debug("Subject point (%s, %s) looks swapped; using (%s, %s)",
                     point.latitude, point.longitude, swapped.latitude, swapped.longitude)
        return swapped
    return point


def default_importance(subject: MatchableSubject) -> ImportanceOverride:
    topic = TopicImportance.NORMAL if subject.topic_id else TopicImportance.DO_NOT_NOTIFY
    return ImportanceOverride(topic_importance=topic, proximity_importance=ProximityImportance.NONE)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MatchEngine:
    """Compute ``user_id -> {SubjectMatch}`` for a batch of subjects."""

    def __init__(self, near_meters: float | None = None, wide_meters: float | None = None) -> None:
        settings = get_settings()
        self.near_meters = near_meters if near_meters is not None else settings.near_distance_meters
        self.wide_meters = wide_meters if wide_meters is not None else settings.wide_distance_meters

    def radius_for(self, importance: ProximityImportance) -> float | None:
        if importance == ProximityImportance.NEAR:
            return self.near_meters
        if importance == ProximityImportance.WIDE:
            return self.wide_meters
        return None

    def match(
        self,
        subjects: Sequence[MatchableSubject],
        users_with_preferences: Sequence[UserPreferences],
        overrides: Mapping[str, ImportanceOverride] | None = None,
    ) -> dict[str, set[SubjectMatch]]:
        """Match every user against every subject.

        Subjects missing from *overrides* use ``default_importance``.
        Users without a single match are absent from the result.
        """
        overrides = overrides or {}
        matches: dict[str, set[SubjectMatch]] = {}

        for subject in subjects:
            importance = overrides.get(subject.id) or default_importance(subject)
            topic_importance = importance.topic_importance
            radius = self.radius_for(importance.proximity_importance) if subject.location else None

            if topic_importance == TopicImportance.DO_NOT_NOTIFY and radius is None:
                continue

            for user in users_with_preferences:
                reasons = self._reasons_for(subject, user, topic_importance, radius)
                if reasons:
                    matches.setdefault(user.user_id, set()).update(
                        SubjectMatch(subject_id=subject.id, reason=reason) for reason in reasons
                    )

        return matches

    def _reasons_for(
        self,
        subject: MatchableSubject,
        user: UserPreferences,
        topic_importance: TopicImportance,
        radius: float | None,
    ) -> set[MatchReason]:
        reasons: set[MatchReason] = set()

        if topic_importance == TopicImportance.HIGH:
            reasons.add(MatchReason.GENERAL_INTEREST)
        elif topic_importance == TopicImportance.NORMAL and subject.topic_id in user.interest_ids:
            reasons.add(MatchReason.TOPIC)

        if radius is not None and user.locations and is_within(user.locations, subject.location, radius):
            reasons.add(MatchReason.PROXIMITY)

        return reasons


def is_within(points: Iterable[GeoPoint], target: GeoPoint, radius_meters: float) -> bool:
    """Return True if any of *points* lies within *radius_meters* of *target*."""
    origin = (target.latitude, target.longitude)
    return any(
        geodesic((p.latitude, p.longitude), origin).meters <= radius_meters
        for p in points
    )


# ---------------------------------------------------------------------------
# Adapters from ORM rows
# ---------------------------------------------------------------------------

def subjects_for_matching(subjects: Iterable[Subject]) -> list[MatchableSubject]:
    return [
        MatchableSubject(
            id=s.id,
            topic_id=s.topic_id,
            location=corrected_point(GeoPoint.from_location(s.location)) if s.location is not None else None,
        )
        for s in subjects
    ]


def users_from_preferences(preferences: Iterable[NotificationPreference]) -> list[UserPreferences]:
    """Collapse preference rows into one ``UserPreferences`` per user."""
    by_user: dict[str, UserPreferences] = {}
    seen_locations: dict[str, set[str]] = {}
    for pref in preferences:
        user_id = str(pref.user_id).strip()
        entry = by_user.setdefault(user_id, UserPreferences(user_id=user_id))
        seen = seen_locations.setdefault(user_id, set())
        for loc in pref.locations:
            if loc.id not in seen:
                seen.add(loc.id)
                entry.locations.append(GeoPoint.from_location(loc))
        entry.interest_ids.update(t.id for t in pref.interests)
    return list(by_user.values())


def stored_importances(subjects: Iterable[Subject]) -> dict[str, ImportanceOverride]:
    """Importance persisted on each subject; unset values fall back to defaults."""
    overrides: dict[str, ImportanceOverride] = {}
    for s in subjects:
        if s.topic_importance is None and s.proximity_importance is None:
            continue
        topic = (
            TopicImportance(s.topic_importance)
            if s.topic_importance
            else default_importance(MatchableSubject(id=s.id, topic_id=s.topic_id)).topic_importance
        )
        proximity = ProximityImportance(s.proximity_importance or ProximityImportance.NONE.value)
        overrides[s.id] = ImportanceOverride(topic_importance=topic, proximity_importance=proximity)
    return overrides


# ---------------------------------------------------------------------------
# Impact preview
# ---------------------------------------------------------------------------

def calculate_notification_impact(
    subjects: Sequence[MatchableSubject],
    users_with_preferences: Sequence[UserPreferences],
    overrides: Mapping[str, ImportanceOverride] | None = None,
    engine: MatchEngine | None = None,
) -> dict:
    """Count how many distinct users each subject would reach.

    Returns ``{"total_users": int, "subject_impact": {subject_id: int}}``.
    A user matched for a subject by several reasons is counted once.
    """
    merged: dict[str, UserPreferences] = {}
    for user in users_with_preferences:
        user_id = str(user.user_id).strip()
        entry = merged.setdefault(user_id, UserPreferences(user_id=user_id))
        entry.locations.extend(p for p in user.locations if p not in entry.locations)
        entry.interest_ids.update(user.interest_ids)

    engine = engine or MatchEngine()
    matches = engine.match(subjects, list(merged.values()), overrides)

    subject_impact: dict[str, int] = {}
    for user_matches in matches.values():
        for subject_id in {m.subject_id for m in user_matches}:
            subject_impact[subject_id] = subject_impact.get(subject_id, 0) + 1

    logger.debug("Impact preview: %d users across %d subjects", len(matches), len(subject_impact))
    return {"total_users": len(matches), "subject_impact": subject_impact}
