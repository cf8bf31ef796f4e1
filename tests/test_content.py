"""Tests for app/notification/content.py."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from app.core.constants import NotificationType
from app.notification.content import (
    ContentSubject,
    NotificationContext,
    generate_email_content,
    generate_sms_content,
    notification_url,
)


def _ctx(subject_names, notification_type=NotificationType.BEFORE_MEETING, body="City Council"):
    return NotificationContext(
        notification_id="n-1",
        type=notification_type,
        city_name="Municipality of Athens",
        meeting_date=datetime(2026, 3, 5, 18, 0, tzinfo=timezone.utc),
        administrative_body_name=body,
        subjects=tuple(ContentSubject(id=f"s{i}", name=name) for i, name in enumerate(subject_names)),
    )


class TestEmail:
    def test_title(self):
        title, _ = generate_email_content(_ctx(["A"]))
        assert title == "Municipality of Athens: City Council - 5/3/2026"

    def test_title_without_body_name(self):
        title, _ = generate_email_content(_ctx(["A"], body=None))
        assert title == "Municipality of Athens: Council meeting - 5/3/2026"

    def test_body_lists_subjects_and_link(self):
        _, body = generate_email_content(_ctx(["Bus lanes", "Parks"]))
        assert "Bus lanes" in body
        assert "Parks" in body
        assert notification_url("n-1") in body
        assert "upcoming" in body

    def test_after_meeting_wording(self):
        _, body = generate_email_content(_ctx(["A"], NotificationType.AFTER_MEETING))
        assert "discussed" in body

    def test_subject_names_are_escaped(self):
        _, body = generate_email_content(_ctx(["<script>"]))
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_subject_matched_twice_is_listed_once(self):
        ctx = replace(_ctx([]), subjects=(ContentSubject("s", "Dup"), ContentSubject("s", "Dup")))
        _, body = generate_email_content(ctx)
        assert body.count("Dup") == 1


class TestSms:
    def test_three_or_fewer_names(self):
        text = generate_sms_content(_ctx(["A", "B", "C"]))
        assert "3 new subjects for you. A, B, C." in text
        assert "others" not in text

    def test_more_than_three_adds_and_others(self):
        text = generate_sms_content(_ctx(["A", "B", "C", "D"]))
        assert "4 new subjects for you. A, B, C and others." in text
        assert ", D" not in text

    def test_contains_link(self):
        assert generate_sms_content(_ctx(["A"])).endswith("https://opencouncil.gr/el/notifications/n-1")
