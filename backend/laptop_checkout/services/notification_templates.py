"""Subject/body rendering for outbound notifications."""
from __future__ import annotations

from datetime import datetime

from .checkout_rules import as_utc, whole_days_overdue

SIGNATURE = "Laptop Checkout System"


def lost_report_message(*, unique_id: str, make: str, model: str, reported_by: str) -> tuple[str, str]:
    subject = f"Laptop Reported Lost: {unique_id}"
    body = f"Laptop {unique_id} ({make} {model}) has been reported lost by user {reported_by}"
    return subject, body


def found_owner_message(*, unique_id: str, finder_name: str) -> tuple[str, str]:
    subject = "Your Lost Laptop Has Been Found"
    body = f"The laptop {unique_id} you checked out has been found and returned by {finder_name}."
    return subject, body


def found_finder_message(*, unique_id: str) -> tuple[str, str]:
    subject = "Thank You for Returning Laptop"
    body = f"Thank you for returning laptop {unique_id}. The original user has been notified."
    return subject, body


def overdue_reminder_message(
    *,
    user_name: str,
    unique_id: str,
    make: str,
    model: str,
    checked_out_at: datetime,
    at: datetime,
) -> tuple[str, str]:
    days = whole_days_overdue(checked_out_at=checked_out_at, at=at)
    checked_out_on = as_utc(checked_out_at).date().isoformat()
    subject = f"Reminder: Overdue Laptop Check-in Required - {unique_id}"
    body = (
        f"Hi {user_name},\n\n"
        f"This is a reminder that the laptop {unique_id} ({make} {model}) you checked out on "
        f"{checked_out_on} is overdue for return by {days} days.\n\n"
        "Please return the laptop as soon as possible or contact the admin if you need an extension.\n\n"
        f"Thank you,\n{SIGNATURE}"
    )
    return subject, body
