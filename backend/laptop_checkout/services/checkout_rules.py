"""Laptop/checkout invariant helpers."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID


LAPTOP_UNIQUE_ID_PREFIX = "LAP-"
ACTIVE_CHECKOUT_STATUS = "active"
COMPLETED_CHECKOUT_STATUS = "completed"


@dataclass(frozen=True)
class AvailableActions:
    can_checkout: bool
    can_checkin: bool
    can_report_lost: bool
    can_report_found: bool


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_laptop_unique_id() -> str:
    return LAPTOP_UNIQUE_ID_PREFIX + secrets.token_hex(8).upper()


def elapsed_minutes(*, since: datetime, until: datetime) -> int:
    """Whole minutes between two instants, floored; never negative."""
    delta = as_utc(until) - as_utc(since)
    if delta < timedelta(0):
        return 0
    return delta // timedelta(minutes=1)


def overdue_cutoff(*, at: datetime, threshold_minutes: int) -> datetime:
    if threshold_minutes < 0:
        raise ValueError("Overdue threshold must be non-negative")
    return as_utc(at) - timedelta(minutes=threshold_minutes)


def whole_days_overdue(*, checked_out_at: datetime, at: datetime) -> int:
    return elapsed_minutes(since=checked_out_at, until=at) // (60 * 24)


def available_actions(
    *,
    laptop_status: str,
    holder_user_id: UUID | None,
    requesting_user_id: UUID,
) -> AvailableActions:
    """Derive scan-page actions from laptop status, active holder and requester."""
    held_by_requester = holder_user_id is not None and holder_user_id == requesting_user_id
    held_by_other = holder_user_id is not None and holder_user_id != requesting_user_id
    return AvailableActions(
        can_checkout=laptop_status == "available",
        can_checkin=held_by_requester,
        can_report_lost=held_by_requester,
        can_report_found=laptop_status == "checked_out" and held_by_other,
    )


def ensure_laptop_available(*, unique_id: str, status: str) -> None:
    if status != "available":
        raise ValueError(
            f"Laptop {unique_id} is not available for checkout. Current status: {status}"
        )


def ensure_laptop_checked_out(*, status: str) -> None:
    if status != "checked_out":
        raise ValueError("Laptop is not currently checked out")


def ensure_holder(*, holder_user_id: UUID, acting_user_id: UUID, action: str) -> None:
    if holder_user_id != acting_user_id:
        raise PermissionError(f"Only the user who checked out this laptop can {action}")
