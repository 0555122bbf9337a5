"""Outbound email transport: SendGrid HTTP API, SMTP, or log-only mock."""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

import requests

from ..config import settings

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


def transport_name() -> str:
    if settings.SENDGRID_API_KEY:
        return "sendgrid"
    if settings.SMTP_HOST:
        return "smtp"
    return "mock"


def _send_via_sendgrid(*, to: str, subject: str, text: str) -> tuple[bool, str | None]:
    payload = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": settings.EMAIL_FROM, "name": settings.EMAIL_FROM_NAME},
        "subject": subject,
        "content": [{"type": "text/plain", "value": text}],
    }
    try:
        response = requests.post(
            SENDGRID_SEND_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
            timeout=10,
        )
    except requests.RequestException as e:
        return False, f"EXCEPTION: {str(e)}"

    if response.status_code in (200, 202):
        return True, None
    if response.status_code == 429:
        return False, "RATE_LIMIT"
    return False, f"HTTP_{response.status_code}: {response.text[:200]}"


def _send_via_smtp(*, to: str, subject: str, text: str) -> tuple[bool, str | None]:
    msg = EmailMessage()
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as s:
            if settings.SMTP_TLS:
                s.starttls()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                s.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            s.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        return False, f"SMTP: {str(e)}"
    return True, None


def send_email(*, to: str, subject: str, text: str) -> tuple[bool, str | None]:
    """Send a plain-text email. Returns (ok, error)."""
    transport = transport_name()
    if transport == "sendgrid":
        return _send_via_sendgrid(to=to, subject=subject, text=text)
    if transport == "smtp":
        return _send_via_smtp(to=to, subject=subject, text=text)

    logger.info("[MOCK EMAIL] to=%s subject=%s body=%s", to, subject, (text or "")[:100])
    return True, None
