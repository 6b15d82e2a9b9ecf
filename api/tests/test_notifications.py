"""Test new-content email fan-out."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app import models
from app.services import notifications


@pytest.fixture()
def outbox(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    sent: list[dict] = []

    def fake_send(to_email: str, subject: str, html_content: str, text_content: str):
        sent.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content})
        return {"id": f"email-{len(sent)}"}

    monkeypatch.setattr(notifications, "send_email", fake_send)
    return sent


def test_recipients_are_opted_in_members(db: Session, make_user):
    keen = make_user(email="keen@example.com")
    make_user(email="quiet@example.com", email_notifications=False)
    other = make_user(models.ROLE_ADMIN, email="other@example.com")

    recipients = notifications.get_notification_recipients(db)
    assert [u.id for u in recipients] == [keen.id, other.id]


def test_send_counts_each_recipient(db: Session, make_user, outbox: list[dict]):
    make_user(email="a@example.com")
    make_user(email="b@example.com")
    make_user(email="c@example.com", email_notifications=False)

    result = notifications.send_content_notification(
        db, notifications.NEW_POST, {"id": 7, "title": "夏合宿", "content": "楽しかった"}
    )

    assert result == {"success": True, "sent": 2, "failed": 0}
    assert sorted(m["to"] for m in outbox) == ["a@example.com", "b@example.com"]
    assert all("夏合宿" in m["subject"] for m in outbox)


def test_one_failed_delivery_does_not_stop_the_rest(db: Session, make_user, monkeypatch: pytest.MonkeyPatch):
    make_user(email="ok@example.com")
    make_user(email="bounce@example.com")
    make_user(email="disabled@example.com")

    def flaky_send(to_email: str, subject: str, html_content: str, text_content: str):
        if to_email == "bounce@example.com":
            raise RuntimeError("mailbox full")
        if to_email == "disabled@example.com":
            return None
        return {"id": "sent"}

    monkeypatch.setattr(notifications, "send_email", flaky_send)

    result = notifications.send_content_notification(db, notifications.NEW_EVENT, {"id": 1, "title": "Live"})
    assert result == {"success": True, "sent": 1, "failed": 2}


def test_no_recipients(db: Session, make_user, outbox: list[dict]):
    make_user(email_notifications=False)
    result = notifications.send_content_notification(db, notifications.NEW_POST, {"id": 1, "title": "t", "content": "c"})
    assert result == {"success": True, "sent": 0, "failed": 0}
    assert outbox == []


def test_unknown_kind_sends_nothing(db: Session, member: models.User, outbox: list[dict]):
    result = notifications.send_content_notification(db, "new_playlist", {"id": 1})
    assert result["success"] is False
    assert outbox == []


def test_event_email_formats_date():
    subject, html_content, text_content = notifications.build_notification_email(
        notifications.NEW_EVENT,
        {"id": 3, "title": "Xmas Live", "date": "2026-12-24T18:00:00"},
        "Rin",
    )
    assert "Xmas Live" in subject
    assert "2026年12月24日 18:00" in text_content
    assert "/events/3" in text_content
    assert text_content.startswith("Rin さん")


def test_activity_schedule_email_without_location():
    _, _, text_content = notifications.build_notification_email(
        notifications.NEW_ACTIVITY_SCHEDULE,
        {"id": 4, "title": "練習", "date": None, "location": None},
        None,
    )
    assert "日時: 未定" in text_content
    assert "場所: 未定" in text_content
    assert text_content.startswith("メンバー さん")


def test_post_email_escapes_html_and_truncates():
    long_body = "<b>" + "x" * 300
    _, html_content, text_content = notifications.build_notification_email(
        notifications.NEW_POST, {"id": 5, "title": "Report", "content": long_body}, "Mio"
    )
    assert "<b>" not in html_content
    assert "&lt;b&gt;" in html_content
    assert "x" * 147 + "..." in text_content


def test_build_rejects_unknown_kind():
    with pytest.raises(ValueError):
        notifications.build_notification_email("new_badge", {"id": 1}, "Mio")


def test_dispatch_swallows_enqueue_errors(monkeypatch: pytest.MonkeyPatch):
    from app import tasks

    class Broken:
        def delay(self, kind, payload):
            raise ConnectionError("no broker")

    monkeypatch.setattr(tasks, "send_content_notification", Broken())
    notifications.dispatch_content_notification(notifications.NEW_POST, {"id": 1})


def test_eager_task_delivers_through_the_service(db: Session, make_user, outbox: list[dict]):
    from app import tasks

    make_user(email="eager@example.com")
    result = tasks.send_content_notification.delay(notifications.NEW_POST, {"id": 9, "title": "t", "content": "c"})

    assert result.get() == {"success": True, "sent": 1, "failed": 0}
    assert [m["to"] for m in outbox] == ["eager@example.com"]
