"""Admin dashboard read models."""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Checkout, Laptop, LostFoundEvent
from ..services.checkout_rules import ACTIVE_CHECKOUT_STATUS, as_utc
from ..services.notification_dispatch import find_overdue_checkouts

RECENT_LOST_FOUND_DAYS = 30
RECENT_LOST_FOUND_LIMIT = 10


def dashboard_summary(*, db: Session, at: datetime, threshold_minutes: int) -> dict[str, int]:
    counts = dict(
        db.query(Laptop.status, func.count(Laptop.id))
        .filter(Laptop.deleted_at.is_(None))
        .group_by(Laptop.status)
        .all()
    )
    overdue = len(find_overdue_checkouts(db, threshold_minutes=threshold_minutes, at=at))
    return {
        "total_laptops": sum(counts.values()),
        "available_laptops": counts.get("available", 0),
        "checked_out_laptops": counts.get("checked_out", 0),
        "overdue_laptops": overdue,
    }


def active_checkouts(*, db: Session) -> list[Checkout]:
    return db.query(Checkout).filter(
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
    ).order_by(Checkout.checked_out_at.desc()).all()


def recent_lost_found_events(*, db: Session, at: datetime) -> list[LostFoundEvent]:
    since = as_utc(at) - timedelta(days=RECENT_LOST_FOUND_DAYS)
    return db.query(LostFoundEvent).filter(
        LostFoundEvent.event_timestamp >= since,
    ).order_by(LostFoundEvent.event_timestamp.desc()).limit(RECENT_LOST_FOUND_LIMIT).all()
