"""Email fan-out for newly created content.

Delivery is best-effort: dispatch only enqueues a Celery task, and neither an
enqueue failure nor a per-recipient send failure reaches the request that
created the content.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from .. import models
from ..settings import BASE_URL
from .email import CLUB_NAME, render_layout, send_email

logger = logging.getLogger(__name__)

NEW_POST = "new_post"
NEW_EVENT = "new_event"
NEW_ACTIVITY_SCHEDULE = "new_activity_schedule"
NOTIFICATION_KINDS = (NEW_POST, NEW_EVENT, NEW_ACTIVITY_SCHEDULE)

EXCERPT_LENGTH = 150


def get_notification_recipients(db: Session) -> list[models.User]:
    """Members who opted in to notification emails."""
    return (
        db.query(models.User)
        .filter(
            models.User.email_notifications == True,  # noqa: E712
            models.User.email.isnot(None),
        )
        .order_by(models.User.id)
        .all()
    )


def _format_date(value: str | None) -> str:
    if not value:
        return "未定"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    return parsed.strftime("%Y年%m月%d日 %H:%M")


def _excerpt(text: str) -> str:
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[:EXCERPT_LENGTH] + "..."


def build_notification_email(kind: str, payload: dict[str, Any], recipient_name: str | None) -> tuple[str, str, str]:
    """
    Render subject, HTML and text bodies for one recipient.

    Raises:
        ValueError: for an unknown notification kind
    """
    greeting = f"{recipient_name or 'メンバー'} さん"
    title = payload.get("title", "")

    if kind == NEW_POST:
        url = f"{BASE_URL}/posts/{payload['id']}"
        subject = f"📝 新しい活動報告「{title}」が投稿されました"
        summary = _excerpt(payload.get("content", ""))
        lines = [f"新しい活動報告「{title}」が投稿されました。", summary]
        label = "活動報告を見る"
    elif kind == NEW_EVENT:
        url = f"{BASE_URL}/events/{payload['id']}"
        subject = f"🎵 新しいイベント「{title}」が作成されました"
        lines = [
            f"新しいイベント「{title}」が作成されました。",
            f"日時: {_format_date(payload.get('date'))}",
        ]
        label = "イベントを見る"
    elif kind == NEW_ACTIVITY_SCHEDULE:
        url = f"{BASE_URL}/activity-schedules/{payload['id']}"
        subject = f"📅 新しい活動スケジュール「{title}」が作成されました"
        lines = [
            f"新しい活動スケジュール「{title}」が作成されました。",
            f"日時: {_format_date(payload.get('date'))}",
            f"場所: {payload.get('location') or '未定'}",
        ]
        label = "スケジュールを見る"
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    body_html = "".join(f"<p>{html.escape(line)}</p>" for line in lines if line)
    html_content = render_layout(
        title=f"{CLUB_NAME} {subject}",
        greeting=greeting,
        body_html=body_html,
        action_url=url,
        action_label=label,
    )
    text_content = "\n\n".join([greeting, *[line for line in lines if line], url])
    return subject, html_content, text_content


def send_content_notification(db: Session, kind: str, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Send one email per opted-in member.

    Returns:
        ``{"success": bool, "sent": int, "failed": int}``
    """
    if kind not in NOTIFICATION_KINDS:
        logger.error(f"Refusing to send unknown notification kind {kind!r}")
        return {"success": False, "sent": 0, "failed": 0}

    recipients = get_notification_recipients(db)
    if not recipients:
        logger.info(f"No members to notify for {kind} {payload.get('id')}")
        return {"success": True, "sent": 0, "failed": 0}

    sent = 0
    failed = 0
    for recipient in recipients:
        subject, html_content, text_content = build_notification_email(kind, payload, recipient.name)
        try:
            result = send_email(recipient.email, subject, html_content, text_content)
        except Exception as e:
            logger.error(f"Notification {kind} to user {recipient.id} failed: {e}")
            result = None
        if result is not None:
            sent += 1
        else:
            failed += 1

    logger.info(
        f"Notification {kind} for {payload.get('id')}: {sent}/{len(recipients)} sent, {failed} failed"
    )
    return {"success": True, "sent": sent, "failed": failed}


def dispatch_content_notification(kind: str, payload: dict[str, Any]) -> None:
    """Queue a notification for async delivery via Celery. Never raises."""
    try:
        from ..tasks import send_content_notification as send_task

        send_task.delay(kind, payload)
        logger.debug(f"Queued {kind} notification for {payload.get('id')}")
    except Exception as e:
        logger.warning(f"Failed to queue {kind} notification: {e}", exc_info=True)


def post_payload(post: models.Post) -> dict[str, Any]:
    return {"id": post.id, "title": post.title, "content": post.content}


def event_payload(event: models.Event) -> dict[str, Any]:
    return {
        "id": event.id,
        "title": event.title,
        "date": event.date.isoformat() if event.date else None,
    }


def activity_schedule_payload(schedule: models.ActivitySchedule) -> dict[str, Any]:
    return {
        "id": schedule.id,
        "title": schedule.title,
        "date": schedule.date.isoformat() if schedule.date else None,
        "location": schedule.location,
    }
