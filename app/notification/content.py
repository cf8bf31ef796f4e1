"""Delivery content rendering.

Renders the email (title + HTML body) and the short text message stored
on ``NotificationDelivery`` rows.  The transport layer sends these
verbatim; nothing here talks to a mail or SMS gateway.

Safety: recipient addresses never reach this module.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from string import Template

from app.core.constants import NotificationType
from app.core.settings import get_settings

_DEFAULT_BODY_NAME = "Council meeting"
_SMS_SUBJECT_LIMIT = 3

_EMAIL_TEMPLATE = Template(
    """<html>
<body style="font-family: sans-serif;">
<h2>$city_name</h2>
<p>$intro</p>
<ul>
$subject_items
</ul>
<p><a href="$notification_url">See all subjects</a></p>
</body>
</html>"""
)

_SUBJECT_ITEM_TEMPLATE = Template(
    '<li><strong style="color: $color;">$name</strong>$topic<br/>$description</li>'
)


@dataclass(frozen=True)
class ContentSubject:
    id: str
    name: str
    description: str = ""
    topic_name: str | None = None
    topic_color: str | None = None


@dataclass(frozen=True)
class NotificationContext:
    """Everything the renderers need about one notification."""

    notification_id: str
    type: NotificationType
    city_name: str
    meeting_date: datetime
    administrative_body_name: str | None
    subjects: tuple[ContentSubject, ...]


def notification_url(notification_id: str) -> str:
    base = get_settings().public_base_url.rstrip("/")
    return f"{base}/el/notifications/{notification_id}"


def _format_date(value: datetime) -> str:
    return f"{value.day}/{value.month}/{value.year}"


def _unique_subjects(subjects: tuple[ContentSubject, ...]) -> list[ContentSubject]:
    # A subject matched for two reasons is listed once.
    seen: set[str] = set()
    unique: list[ContentSubject] = []
    for s in subjects:
        if s.id not in seen:
            seen.add(s.id)
            unique.append(s)
    return unique


def generate_email_content(ctx: NotificationContext) -> tuple[str, str]:
    """Return ``(title, html_body)`` for the email delivery."""
    body_name = ctx.administrative_body_name or _DEFAULT_BODY_NAME
    date = _format_date(ctx.meeting_date)
    title = f"{ctx.city_name}: {body_name} - {date}"

    if ctx.type == NotificationType.BEFORE_MEETING:
        intro = f"The upcoming {body_name} meeting on {date} will discuss subjects that concern you:"
    else:
        intro = f"The {body_name} meeting on {date} discussed subjects that concern you:"

    items = "\n".join(
        _SUBJECT_ITEM_TEMPLATE.safe_substitute(
            color=escape(s.topic_color or "#888888"),
            name=escape(s.name),
            topic=f" ({escape(s.topic_name)})" if s.topic_name else "",
            description=escape(s.description or ""),
        )
        for s in _unique_subjects(ctx.subjects)
    )

    body = _EMAIL_TEMPLATE.safe_substitute(
        city_name=escape(ctx.city_name),
        intro=escape(intro),
        subject_items=items,
        notification_url=escape(notification_url(ctx.notification_id)),
    )
    return title, body


def generate_sms_content(ctx: NotificationContext) -> str:
    """Return the plain-text body for the ``message`` delivery.

    Lists at most three subject names, then "and others".
    """
    subjects = _unique_subjects(ctx.subjects)
    body_name = ctx.administrative_body_name or _DEFAULT_BODY_NAME.lower()
    names = ", ".join(s.name for s in subjects[:_SMS_SUBJECT_LIMIT])
    if len(subjects) > _SMS_SUBJECT_LIMIT:
        names = f"{names} and others"

    return (
        f"{ctx.city_name} - {body_name} on {_format_date(ctx.meeting_date)}: "
        f"{len(subjects)} new subjects for you. {names}. "
        f"See more: {notification_url(ctx.notification_id)}"
    )
