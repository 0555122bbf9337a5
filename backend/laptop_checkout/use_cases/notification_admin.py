"""Overdue sweep and administrative notification re-submission."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ..services.notification_dispatch import (
    find_overdue_checkouts_to_notify,
    pending_lost_found_notification_ids,
    reset_failed_notifications,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationQueueHooks:
    """Job submission callables for the background worker."""

    enqueue_email: Callable[[UUID], None]
    enqueue_overdue: Callable[[UUID], None]


def run_overdue_sweep(
    *,
    db: Session,
    at: datetime,
    threshold_minutes: int,
    dedup_hours: int,
    hooks: NotificationQueueHooks,
) -> dict[str, int]:
    """Submit one overdue-reminder job per overdue checkout not reminded recently."""
    checkouts = find_overdue_checkouts_to_notify(
        db,
        threshold_minutes=threshold_minutes,
        at=at,
        dedup_hours=dedup_hours,
    )
    checkout_ids = [checkout.id for checkout in checkouts]
    # Release row snapshots before talking to the broker.
    db.rollback()

    queued = 0
    for checkout_id in checkout_ids:
        try:
            hooks.enqueue_overdue(checkout_id)
            queued += 1
        except Exception:
            logger.exception("Failed to enqueue overdue reminder for checkout %s", checkout_id)
    logger.info("Overdue sweep: %s overdue, %s queued", len(checkout_ids), queued)
    return {"overdue_count": len(checkout_ids), "queued": queued}


def resubmit_pending_lost_found(*, db: Session, hooks: NotificationQueueHooks) -> dict[str, int]:
    ids = pending_lost_found_notification_ids(db)
    processed = 0
    for notification_id in ids:
        try:
            hooks.enqueue_email(notification_id)
            processed += 1
        except Exception:
            logger.exception("Failed to re-submit notification %s", notification_id)
    return {"processed": processed}


def retry_failed_notifications(*, db: Session, max_retries: int, hooks: NotificationQueueHooks) -> dict[str, int]:
    """Reset failed rows under the retry cap to pending and re-submit them."""
    notifications = reset_failed_notifications(db, max_retries=max_retries)
    retried = 0
    for notification in notifications:
        try:
            hooks.enqueue_email(notification.id)
            retried += 1
        except Exception:
            logger.exception("Failed to re-submit notification %s", notification.id)
    return {"retried": retried}
