"""Notification delivery bookkeeping and overdue sweep queries.

Rows in ``notification_logs`` are created by domain operations (status ``pending``)
and updated here as the background worker attempts delivery.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy import exists, func
from sqlalchemy.orm import Session

from ..models import Checkout, Laptop, NotificationLog, User
from .checkout_rules import ACTIVE_CHECKOUT_STATUS, as_utc, now_utc, overdue_cutoff
from .email_transport import send_email
from .notification_templates import overdue_reminder_message

logger = logging.getLogger(__name__)

EmailSender = Callable[..., tuple[bool, str | None]]

LOST_FOUND_BATCH_SIZE = 50
RETRY_FAILED_BATCH_SIZE = 20


class NotificationDeliveryError(Exception):
    """Transport rejected the message; the worker retries with backoff."""


def deliver_notification(
    db: Session,
    notification_id: UUID,
    *,
    sender: EmailSender = send_email,
    clock: Callable[[], datetime] = now_utc,
) -> str:
    """
    Attempt delivery of one NotificationLog row.

    Returns ``"sent"``, ``"already_sent"`` or ``"missing"``. On transport failure the row
    is marked failed (retry_count incremented), committed, and NotificationDeliveryError raised.
    """
    notification = db.query(NotificationLog).filter(NotificationLog.id == notification_id).first()
    if notification is None:
        logger.warning("Notification %s not found; dropping job", notification_id)
        return "missing"
    if notification.status == "sent":
        # Duplicate delivery from the at-least-once runner.
        logger.info("Notification %s already sent; skipping", notification_id)
        return "already_sent"

    ok, error = sender(
        to=notification.recipient_email,
        subject=notification.subject,
        text=notification.body or "",
    )
    if ok:
        notification.status = "sent"
        notification.sent_at = clock()
        notification.error_message = None
        db.commit()
        logger.info("Sent notification %s to %s", notification_id, notification.recipient_email)
        return "sent"

    notification.status = "failed"
    notification.failed_at = clock()
    notification.error_message = error or "Unknown error"
    notification.retry_count = (notification.retry_count or 0) + 1
    db.commit()
    logger.warning(
        "Delivery failed for notification %s (attempt %s): %s",
        notification_id, notification.retry_count, notification.error_message,
    )
    raise NotificationDeliveryError(notification.error_message)


def _recent_overdue_notification_exists(*, since: datetime):
    return exists().where(
        NotificationLog.notification_type == "overdue",
        NotificationLog.recipient_user_id == Checkout.user_id,
        NotificationLog.related_entity_type == "checkout",
        NotificationLog.related_entity_id == Checkout.id,
        NotificationLog.created_at >= since,
    )


def find_overdue_checkouts(
    db: Session,
    *,
    threshold_minutes: int,
    at: datetime,
) -> list[Checkout]:
    """Active checkouts older than the threshold, oldest first."""
    cutoff = overdue_cutoff(at=at, threshold_minutes=threshold_minutes)
    return db.query(Checkout).filter(
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
        Checkout.checked_out_at < cutoff,
    ).order_by(Checkout.checked_out_at.asc()).all()


def find_overdue_checkouts_to_notify(
    db: Session,
    *,
    threshold_minutes: int,
    at: datetime,
    dedup_hours: int = 24,
) -> list[Checkout]:
    """Overdue checkouts without an overdue notification inside the dedup window."""
    cutoff = overdue_cutoff(at=at, threshold_minutes=threshold_minutes)
    since = as_utc(at) - timedelta(hours=dedup_hours)
    return db.query(Checkout).filter(
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
        Checkout.checked_out_at < cutoff,
        ~_recent_overdue_notification_exists(since=since),
    ).order_by(Checkout.checked_out_at.asc()).all()


def create_overdue_notification(
    db: Session,
    checkout_id: UUID,
    *,
    at: datetime,
    dedup_hours: int = 24,
) -> NotificationLog | None:
    """
    Create the pending overdue reminder for one checkout.

    Returns None when the checkout is gone, no longer active, or was already reminded
    inside the dedup window.
    """
    checkout = db.query(Checkout).filter(Checkout.id == checkout_id).first()
    if checkout is None or checkout.status != ACTIVE_CHECKOUT_STATUS:
        logger.warning("Checkout %s not found or not active; skipping overdue reminder", checkout_id)
        return None

    since = as_utc(at) - timedelta(hours=dedup_hours)
    already = db.query(NotificationLog.id).filter(
        NotificationLog.notification_type == "overdue",
        NotificationLog.recipient_user_id == checkout.user_id,
        NotificationLog.related_entity_type == "checkout",
        NotificationLog.related_entity_id == checkout.id,
        NotificationLog.created_at >= since,
    ).first()
    if already is not None:
        logger.info("Overdue reminder for checkout %s already created recently", checkout_id)
        return None

    user = db.query(User).filter(User.id == checkout.user_id).first()
    laptop = db.query(Laptop).filter(Laptop.id == checkout.laptop_id).first()
    if user is None or laptop is None:
        logger.warning("Checkout %s references missing user or laptop", checkout_id)
        return None

    subject, body = overdue_reminder_message(
        user_name=user.name,
        unique_id=laptop.unique_id,
        make=laptop.make,
        model=laptop.model,
        checked_out_at=checkout.checked_out_at,
        at=at,
    )
    notification = NotificationLog(
        notification_type="overdue",
        recipient_email=user.email,
        recipient_user_id=user.id,
        subject=subject,
        body=body,
        related_entity_type="checkout",
        related_entity_id=checkout.id,
        status="pending",
        retry_count=0,
        created_at=at,
    )
    db.add(notification)
    db.commit()
    return notification


def pending_lost_found_notification_ids(db: Session, *, limit: int = LOST_FOUND_BATCH_SIZE) -> list[UUID]:
    rows = db.query(NotificationLog.id).filter(
        NotificationLog.notification_type == "lost_found",
        NotificationLog.status == "pending",
    ).order_by(NotificationLog.created_at.asc()).limit(limit).all()
    return [row[0] for row in rows]


def mark_notification_unsubmitted(
    db: Session,
    notification_id: UUID,
    *,
    error: str,
    clock: Callable[[], datetime] = now_utc,
) -> None:
    """Flag a row whose delivery job never reached the broker so retry-failed re-submits it."""
    notification = db.query(NotificationLog).filter(NotificationLog.id == notification_id).first()
    if notification is None or notification.status != "pending":
        return
    notification.status = "failed"
    notification.failed_at = clock()
    notification.error_message = error
    db.commit()


def reset_failed_notifications(
    db: Session,
    *,
    max_retries: int,
    limit: int = RETRY_FAILED_BATCH_SIZE,
) -> list[NotificationLog]:
    """Move failed rows still under the retry cap back to pending."""
    failed = db.query(NotificationLog).filter(
        NotificationLog.status == "failed",
        NotificationLog.retry_count < max_retries,
    ).order_by(NotificationLog.created_at.asc()).limit(limit).all()
    for notification in failed:
        notification.status = "pending"
        notification.error_message = None
    db.commit()
    return failed


def notification_history(
    db: Session,
    *,
    user_id: UUID | None = None,
    notification_type: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[NotificationLog], int]:
    query = db.query(NotificationLog)
    if user_id is not None:
        query = query.filter(NotificationLog.recipient_user_id == user_id)
    if notification_type:
        query = query.filter(NotificationLog.notification_type == notification_type)
    if status:
        query = query.filter(NotificationLog.status == status)
    total = query.count()
    rows = query.order_by(NotificationLog.created_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def notification_stats(db: Session) -> dict:
    by_status = dict(
        db.query(NotificationLog.status, func.count(NotificationLog.id))
        .group_by(NotificationLog.status)
        .all()
    )
    by_type = dict(
        db.query(NotificationLog.notification_type, func.count(NotificationLog.id))
        .group_by(NotificationLog.notification_type)
        .all()
    )
    return {
        "total": sum(by_status.values()),
        "sent": by_status.get("sent", 0),
        "failed": by_status.get("failed", 0),
        "pending": by_status.get("pending", 0),
        "by_type": by_type,
    }
