"""
Celery worker: email delivery for NotificationLog rows and the hourly overdue sweep.

Delivery is at-least-once; tasks re-check row state so duplicates are harmless.
"""
from celery import Celery
from celery.schedules import crontab
from uuid import UUID
import logging
from .config import settings
from .database import SessionLocal
from .services.checkout_rules import now_utc
from .services.notification_dispatch import (
    NotificationDeliveryError,
    create_overdue_notification,
    deliver_notification,
    mark_notification_unsubmitted,
)
from .use_cases.notification_admin import NotificationQueueHooks, run_overdue_sweep

logger = logging.getLogger(__name__)

celery_app = Celery(
    "laptop_checkout",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_acks_late=True,
)


@celery_app.task(
    name="send_notification_email",
    autoretry_for=(NotificationDeliveryError,),
    retry_backoff=settings.NOTIFICATION_BACKOFF_SECONDS,
    retry_backoff_max=600,
    retry_jitter=False,
    max_retries=max(settings.NOTIFICATION_MAX_ATTEMPTS - 1, 0),
)
def send_notification_email(notification_log_id: str):
    """Deliver one NotificationLog row; failures are retried with exponential backoff."""
    db = SessionLocal()
    try:
        result = deliver_notification(db, UUID(notification_log_id))
        return {"notification_log_id": notification_log_id, "result": result}
    except NotificationDeliveryError:
        # Row already committed as failed; let Celery schedule the retry.
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error delivering notification {notification_log_id}: {e}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="send_overdue_notification")
def send_overdue_notification(checkout_id: str):
    """Create the overdue reminder row for a checkout and submit it for delivery."""
    db = SessionLocal()
    try:
        notification = create_overdue_notification(
            db,
            UUID(checkout_id),
            at=now_utc(),
            dedup_hours=settings.OVERDUE_SWEEP_DEDUP_HOURS,
        )
        if notification is None:
            return {"checkout_id": checkout_id, "queued": False}
        notification_id = notification.id

        try:
            enqueue_notification_delivery(notification_id)
        except Exception as e:
            # The dedup window would hide a pending row from the next sweep; retry-failed picks this up.
            logger.error(f"Error submitting overdue reminder {notification_id}: {e}", exc_info=True)
            mark_notification_unsubmitted(db, notification_id, error=f"ENQUEUE_FAILED: {e}")
            return {"checkout_id": checkout_id, "queued": False, "notification_log_id": str(notification_id)}
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating overdue reminder for checkout {checkout_id}: {e}", exc_info=True)
        raise
    finally:
        db.close()

    return {"checkout_id": checkout_id, "queued": True, "notification_log_id": str(notification_id)}


@celery_app.task(name="check_overdue_checkouts")
def check_overdue_checkouts():
    """Hourly sweep: one reminder job per overdue checkout outside the dedup window."""
    db = SessionLocal()
    try:
        return run_overdue_sweep(
            db=db,
            at=now_utc(),
            threshold_minutes=settings.OVERDUE_THRESHOLD_MINUTES,
            dedup_hours=settings.OVERDUE_SWEEP_DEDUP_HOURS,
            hooks=notification_queue_hooks(),
        )
    finally:
        db.close()


def enqueue_notification_delivery(notification_id: UUID) -> None:
    send_notification_email.delay(str(notification_id))


def enqueue_overdue_reminder(checkout_id: UUID) -> None:
    send_overdue_notification.delay(str(checkout_id))


def notification_queue_hooks() -> NotificationQueueHooks:
    return NotificationQueueHooks(
        enqueue_email=enqueue_notification_delivery,
        enqueue_overdue=enqueue_overdue_reminder,
    )


# Schedule periodic processing
celery_app.conf.beat_schedule = {
    'check-overdue-checkouts-hourly': {
        'task': 'check_overdue_checkouts',
        'schedule': crontab(minute=0),
    },
}
