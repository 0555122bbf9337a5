"""Notification administration endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..celery_app import notification_queue_hooks
from ..config import settings
from ..database import get_db
from ..models import User
from ..responses import success_response
from ..schemas import NotificationHistoryResponse, NotificationLogResponse, NotificationStatsResponse
from ..services.checkout_rules import now_utc
from ..services.notification_dispatch import notification_history, notification_stats
from ..use_cases.notification_admin import (
    NotificationQueueHooks,
    resubmit_pending_lost_found,
    retry_failed_notifications,
    run_overdue_sweep,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_queue_hooks() -> NotificationQueueHooks:
    return notification_queue_hooks()


@router.get("/history")
def get_history(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    notification_type: Optional[str] = Query(
        None,
        alias="notificationType",
        pattern="^(overdue|lost_found|user_invitation|password_reset)$",
    ),
    status: Optional[str] = Query(None, pattern="^(pending|sent|failed|bounced)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(PermissionChecker("canManageNotifications")),
    db: Session = Depends(get_db),
):
    rows, total = notification_history(
        db,
        user_id=user_id,
        notification_type=notification_type,
        status=status,
        limit=limit,
        offset=offset,
    )
    payload = NotificationHistoryResponse(
        notifications=[NotificationLogResponse.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
    return success_response(payload, "Notification history retrieved successfully")


@router.get("/stats")
def get_stats(
    current_user: User = Depends(PermissionChecker("canManageNotifications")),
    db: Session = Depends(get_db),
):
    stats = notification_stats(db)
    return success_response(NotificationStatsResponse(**stats), "Notification statistics retrieved successfully")


@router.post("/check-overdue")
def check_overdue(
    current_user: User = Depends(PermissionChecker("canManageNotifications")),
    db: Session = Depends(get_db),
    hooks: NotificationQueueHooks = Depends(get_notification_queue_hooks),
):
    """Run the overdue sweep now instead of waiting for the hourly schedule."""
    result = run_overdue_sweep(
        db=db,
        at=now_utc(),
        threshold_minutes=settings.OVERDUE_THRESHOLD_MINUTES,
        dedup_hours=settings.OVERDUE_SWEEP_DEDUP_HOURS,
        hooks=hooks,
    )
    return success_response(
        {"overdueCount": result["overdue_count"], "queued": result["queued"]},
        "Overdue check completed",
    )


@router.post("/process-lost-found")
def process_lost_found(
    current_user: User = Depends(PermissionChecker("canManageNotifications")),
    db: Session = Depends(get_db),
    hooks: NotificationQueueHooks = Depends(get_notification_queue_hooks),
):
    result = resubmit_pending_lost_found(db=db, hooks=hooks)
    return success_response(result, "Pending lost/found notifications submitted")


@router.post("/retry-failed")
def retry_failed(
    current_user: User = Depends(PermissionChecker("canManageNotifications")),
    db: Session = Depends(get_db),
    hooks: NotificationQueueHooks = Depends(get_notification_queue_hooks),
):
    result = retry_failed_notifications(
        db=db,
        max_retries=settings.NOTIFICATION_MAX_ATTEMPTS,
        hooks=hooks,
    )
    return success_response(result, "Failed notifications resubmitted")
