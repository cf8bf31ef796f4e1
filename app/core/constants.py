"""Canonical enumerations shared by reconciliation, matching and delivery.

All values are ``str`` enums so they compare equal to the plain strings
stored in the database and exchanged with the extraction pipeline and the
admin UI.

Agenda placement
----------------
A subject is either a numbered agenda item or belongs to one of two
sentinel buckets: discussion held *before* the agenda proper, and
discussion *outside* the agenda.  Each bucket holds at most one subject
per meeting.
"""
from __future__ import annotations

from enum import Enum


class AgendaBucket(str, Enum):
    BEFORE_AGENDA = "BEFORE_AGENDA"
    OUT_OF_AGENDA = "OUT_OF_AGENDA"


class NonAgendaReason(str, Enum):
    BEFORE_AGENDA = "beforeAgenda"
    OUT_OF_AGENDA = "outOfAgenda"


BUCKET_TO_REASON: dict[AgendaBucket, NonAgendaReason] = {
    AgendaBucket.BEFORE_AGENDA: NonAgendaReason.BEFORE_AGENDA,
    AgendaBucket.OUT_OF_AGENDA: NonAgendaReason.OUT_OF_AGENDA,
}


# ---------------------------------------------------------------------------
# Notification importance
# ---------------------------------------------------------------------------

class TopicImportance(str, Enum):
    DO_NOT_NOTIFY = "doNotNotify"
    NORMAL = "normal"
    HIGH = "high"


class ProximityImportance(str, Enum):
    NONE = "none"
    NEAR = "near"
    WIDE = "wide"


class MatchReason(str, Enum):
    TOPIC = "topic"
    PROXIMITY = "proximity"
    GENERAL_INTEREST = "generalInterest"


# ---------------------------------------------------------------------------
# Notifications and deliveries
# ---------------------------------------------------------------------------

class NotificationType(str, Enum):
    BEFORE_MEETING = "beforeMeeting"
    AFTER_MEETING = "afterMeeting"


class DeliveryMedium(str, Enum):
    EMAIL = "email"
    MESSAGE = "message"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class MessageChannel(str, Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"


VALID_NOTIFICATION_TYPES: frozenset[str] = frozenset(t.value for t in NotificationType)
VALID_DELIVERY_STATUSES: frozenset[str] = frozenset(s.value for s in DeliveryStatus)
