"""Email service using Resend for sending transactional emails."""

from __future__ import annotations

import html
import logging
import os
from typing import Any

import resend

from ..settings import BASE_URL

logger = logging.getLogger(__name__)

# Resend configuration from environment
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "noreply@bold-osaka-keion.fyi")

CLUB_NAME = "BOLD 軽音"


def _init_resend() -> bool:
    """Initialize Resend API key. Returns True if configured."""
    if not RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured - email sending disabled")
        return False
    resend.api_key = RESEND_API_KEY
    return True


def render_layout(title: str, greeting: str, body_html: str, action_url: str, action_label: str) -> str:
    """Wrap an email body in the shared club layout."""
    safe_url = html.escape(action_url, quote=True)
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #111827; padding: 24px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 22px;">🎸 {CLUB_NAME}</h1>
    </div>

    <div style="background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px;">
        <p style="margin-top: 0; font-size: 18px;">{html.escape(greeting)}</p>

        {body_html}

        <div style="text-align: center; margin: 30px 0;">
            <a href="{safe_url}"
               style="background: #2563eb; color: white; text-decoration: none; padding: 14px 28px; border-radius: 5px; font-weight: bold; display: inline-block;">
                {html.escape(action_label)}
            </a>
        </div>

        <p style="color: #666; font-size: 12px; word-break: break-all;">
            <a href="{safe_url}" style="color: #2563eb;">{safe_url}</a>
        </p>
    </div>

    <div style="text-align: center; padding: 20px; color: #999; font-size: 12px;">
        <p>通知の受信設定はプロフィールページから変更できます。</p>
    </div>
</body>
</html>
"""


def send_email(to_email: str, subject: str, html_content: str, text_content: str) -> dict[str, Any] | None:
    """
    Send a single email.

    Returns:
        Resend API response if successful, None if email sending is disabled or fails
    """
    if not _init_resend():
        logger.info(f"Email sending disabled - would send '{subject}' to {to_email}")
        return None

    try:
        params: resend.Emails.SendParams = {
            "from": RESEND_FROM_EMAIL,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }

        response = resend.Emails.send(params)
        logger.info(f"Email '{subject}' sent to {to_email}, id: {response.get('id', 'unknown')}")
        return response
    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {to_email}: {e}")
        return None


def send_verification_email(to_email: str, token: str, name: str | None = None) -> dict[str, Any] | None:
    """Send the email address verification link to a newly registered member."""
    verification_url = f"{BASE_URL}/auth/verify-email?token={token}"
    greeting = f"{name} さん" if name else "こんにちは"

    html_content = render_layout(
        title=f"{CLUB_NAME} メールアドレスの確認",
        greeting=greeting,
        body_html=(
            f"<p>{CLUB_NAME}への登録ありがとうございます。"
            "下のボタンからメールアドレスを確認してください。</p>"
            '<p style="color: #999; font-size: 12px;">このリンクの有効期限は24時間です。</p>'
        ),
        action_url=verification_url,
        action_label="メールアドレスを確認する",
    )
    text_content = f"""{greeting}

{CLUB_NAME}への登録ありがとうございます。以下のリンクからメールアドレスを確認してください。
{verification_url}

このリンクの有効期限は24時間です。
"""
    return send_email(to_email, f"【{CLUB_NAME}】メールアドレスの確認", html_content, text_content)


def send_password_reset_email(to_email: str, token: str, name: str | None = None) -> dict[str, Any] | None:
    """Send a password reset link."""
    reset_url = f"{BASE_URL}/auth/reset-password?token={token}"
    greeting = f"{name} さん" if name else "こんにちは"

    html_content = render_layout(
        title=f"{CLUB_NAME} パスワードの再設定",
        greeting=greeting,
        body_html=(
            "<p>パスワード再設定のリクエストを受け付けました。</p>"
            '<p style="color: #999; font-size: 12px;">このリンクの有効期限は1時間です。'
            "心当たりがない場合はこのメールを無視してください。</p>"
        ),
        action_url=reset_url,
        action_label="パスワードを再設定する",
    )
    text_content = f"""{greeting}

パスワード再設定のリクエストを受け付けました。以下のリンクから再設定してください。
{reset_url}

このリンクの有効期限は1時間です。心当たりがない場合はこのメールを無視してください。
"""
    return send_email(to_email, f"【{CLUB_NAME}】パスワードの再設定", html_content, text_content)
