"""Laptop checkout lifecycle use-cases: checkout, check-in, lost and found.

Every state-changing operation locks the rows it validates (laptop first, then user),
writes its audit/notification rows in the same transaction, and only submits
notification jobs after the commit succeeded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from ..models import AuditLog, Checkout, Laptop, LostFoundEvent, NotificationLog, User
from ..services.checkout_rules import (
    ACTIVE_CHECKOUT_STATUS,
    COMPLETED_CHECKOUT_STATUS,
    AvailableActions,
    available_actions,
    elapsed_minutes,
    ensure_holder,
    ensure_laptop_available,
    ensure_laptop_checked_out,
)
from ..services.notification_dispatch import find_overdue_checkouts
from ..services.notification_templates import (
    found_finder_message,
    found_owner_message,
    lost_report_message,
)

logger = logging.getLogger(__name__)

REPORT_LOST_MESSAGE = "Laptop reported as lost. Admin has been notified."


@dataclass(frozen=True)
class CheckoutLifecycleHooks:
    """Collaborators injected into lifecycle use-cases."""

    enqueue_notification: Callable[[UUID], None] | None = None
    now_utc: Callable[[], datetime] | None = None
    admin_email: str | None = None


@dataclass(frozen=True)
class CheckoutStatus:
    laptop: Laptop
    checkout: Checkout | None
    available_actions: AvailableActions


@dataclass(frozen=True)
class ReportLostResult:
    message: str
    laptop: Laptop


def _required(name: str, hook: object):
    if hook is None:
        raise RuntimeError(f"Missing checkout lifecycle hook: {name}")
    return hook


def _get_laptop_or_404(*, db: Session, unique_id: str, lock: bool = False) -> Laptop:
    query = db.query(Laptop).filter(
        Laptop.unique_id == unique_id,
        Laptop.deleted_at.is_(None),
    )
    if lock:
        query = query.with_for_update()
    laptop = query.first()
    if not laptop:
        raise NotFoundError(code="NOT_FOUND_LAPTOP", message="Laptop not found")
    return laptop


def _get_user_or_404(*, db: Session, user_id: UUID, lock: bool = False, message: str = "User not found") -> User:
    query = db.query(User).filter(
        User.id == user_id,
        User.deleted_at.is_(None),
    )
    if lock:
        query = query.with_for_update()
    user = query.first()
    if not user:
        raise NotFoundError(code="NOT_FOUND_USER", message=message)
    return user


def _active_checkout_for_laptop(*, db: Session, laptop_id: UUID, lock: bool = False) -> Checkout | None:
    query = db.query(Checkout).filter(
        Checkout.laptop_id == laptop_id,
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def _held_checkout_conflict(*, db: Session, user_id: UUID) -> ConflictError | None:
    held = db.query(Checkout).filter(
        Checkout.user_id == user_id,
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
    ).first()
    if held is None:
        return None
    held_laptop = db.query(Laptop).filter(Laptop.id == held.laptop_id).first()
    held_unique_id = held_laptop.unique_id if held_laptop else str(held.laptop_id)
    return ConflictError(
        code="BIZ_USER_HAS_ACTIVE_CHECKOUT",
        message=(
            f"User already has laptop {held_unique_id} checked out. "
            "Only one laptop per user is allowed."
        ),
        details={"laptopUniqueId": held_unique_id, "checkoutId": str(held.id)},
    )


def _commit_or_conflict(db: Session, *, laptop: Laptop, user_id: UUID) -> None:
    """Commit; a unique-index violation means a concurrent request won the race."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        reason = str(exc.orig)
        logger.warning("Concurrent checkout rejected for laptop %s: %s", laptop.unique_id, reason)
        if "uq_checkouts_active_user" in reason or "checkouts.user_id" in reason:
            conflict = _held_checkout_conflict(db=db, user_id=user_id)
            if conflict is None:
                conflict = ConflictError(
                    code="BIZ_USER_HAS_ACTIVE_CHECKOUT",
                    message="User already has an active checkout. Only one laptop per user is allowed.",
                )
            raise conflict from exc
        raise ConflictError(
            code="BIZ_LAPTOP_ALREADY_CHECKED_OUT",
            message=f"Laptop {laptop.unique_id} is already checked out",
        ) from exc


def _enqueue_after_commit(hooks: CheckoutLifecycleHooks, notification_ids: list[UUID]) -> None:
    enqueue = _required("enqueue_notification", hooks.enqueue_notification)
    for notification_id in notification_ids:
        try:
            enqueue(notification_id)
        except Exception:
            # Row stays pending; the lost/found re-submit sweep picks it up.
            logger.exception("Failed to enqueue notification %s", notification_id)


def checkout_laptop_use_case(
    *,
    db: Session,
    laptop_unique_id: str,
    user_id: UUID,
    hooks: CheckoutLifecycleHooks,
) -> Checkout:
    """Check a laptop out to a user."""
    now_utc = _required("now_utc", hooks.now_utc)

    laptop = _get_laptop_or_404(db=db, unique_id=laptop_unique_id, lock=True)
    try:
        ensure_laptop_available(unique_id=laptop.unique_id, status=laptop.status)
    except ValueError as error:
        raise InvalidStateError(
            code="VAL_LAPTOP_NOT_AVAILABLE",
            message=str(error),
            details={"laptopUniqueId": laptop.unique_id, "status": laptop.status},
        ) from error

    user = _get_user_or_404(db=db, user_id=user_id, lock=True)

    conflict = _held_checkout_conflict(db=db, user_id=user.id)
    if conflict is not None:
        raise conflict

    now = now_utc()
    checkout = Checkout(
        laptop_id=laptop.id,
        user_id=user.id,
        checked_out_at=now,
        status=ACTIVE_CHECKOUT_STATUS,
    )
    db.add(checkout)
    laptop.status = "checked_out"
    db.add(
        AuditLog(
            user_id=user.id,
            action="checkout",
            entity_type="laptop",
            entity_id=laptop.id,
            details={"laptopUniqueId": laptop.unique_id, "userEmail": user.email},
            created_at=now,
        )
    )
    _commit_or_conflict(db, laptop=laptop, user_id=user.id)
    logger.info("Laptop %s checked out to user %s", laptop.unique_id, user.id)
    return checkout


def checkin_laptop_use_case(
    *,
    db: Session,
    laptop_unique_id: str,
    requesting_user_id: UUID,
    hooks: CheckoutLifecycleHooks,
) -> Checkout:
    """Return a laptop; only the holder may check it in."""
    now_utc = _required("now_utc", hooks.now_utc)

    laptop = _get_laptop_or_404(db=db, unique_id=laptop_unique_id, lock=True)
    try:
        ensure_laptop_checked_out(status=laptop.status)
    except ValueError as error:
        raise InvalidStateError(code="VAL_LAPTOP_NOT_CHECKED_OUT", message=str(error)) from error

    checkout = _active_checkout_for_laptop(db=db, laptop_id=laptop.id, lock=True)
    if checkout is None:
        raise NotFoundError(code="NOT_FOUND_CHECKOUT", message="No active checkout found for this laptop")

    try:
        ensure_holder(holder_user_id=checkout.user_id, acting_user_id=requesting_user_id, action="check it in")
    except PermissionError as error:
        raise ForbiddenError(code="VAL_UNAUTHORIZED_CHECKIN", message=str(error)) from error

    now = now_utc()
    duration = elapsed_minutes(since=checkout.checked_out_at, until=now)
    checkout.checked_in_at = now
    checkout.status = COMPLETED_CHECKOUT_STATUS
    laptop.status = "available"
    db.add(
        AuditLog(
            user_id=requesting_user_id,
            action="checkin",
            entity_type="laptop",
            entity_id=laptop.id,
            details={
                "laptopUniqueId": laptop.unique_id,
                "checkoutId": str(checkout.id),
                "checkoutDurationMinutes": duration,
            },
            created_at=now,
        )
    )
    db.commit()
    logger.info("Laptop %s checked in after %s minutes", laptop.unique_id, duration)
    return checkout


def report_lost_use_case(
    *,
    db: Session,
    laptop_unique_id: str,
    reporting_user_id: UUID,
    hooks: CheckoutLifecycleHooks,
) -> ReportLostResult:
    """Pull a lost laptop into maintenance and alert the admin; the checkout stays active."""
    now_utc = _required("now_utc", hooks.now_utc)
    admin_email = _required("admin_email", hooks.admin_email)

    laptop = _get_laptop_or_404(db=db, unique_id=laptop_unique_id, lock=True)
    checkout = _active_checkout_for_laptop(db=db, laptop_id=laptop.id)
    if checkout is None:
        raise InvalidStateError(code="VAL_LAPTOP_NOT_CHECKED_OUT", message="Laptop is not currently checked out")

    try:
        ensure_holder(holder_user_id=checkout.user_id, acting_user_id=reporting_user_id, action="report it lost")
    except PermissionError as error:
        raise ForbiddenError(code="VAL_UNAUTHORIZED_ACTION", message=str(error)) from error

    now = now_utc()
    laptop.status = "maintenance"
    db.add(
        AuditLog(
            user_id=reporting_user_id,
            action="report_lost",
            entity_type="laptop",
            entity_id=laptop.id,
            details={"laptopUniqueId": laptop.unique_id, "checkoutId": str(checkout.id)},
            created_at=now,
        )
    )
    subject, body = lost_report_message(
        unique_id=laptop.unique_id,
        make=laptop.make,
        model=laptop.model,
        reported_by=str(reporting_user_id),
    )
    notification = NotificationLog(
        notification_type="lost_found",
        recipient_email=admin_email,
        subject=subject,
        body=body,
        related_entity_type="laptop",
        related_entity_id=laptop.id,
        status="pending",
        retry_count=0,
        created_at=now,
    )
    db.add(notification)
    db.commit()
    logger.info("Laptop %s reported lost by user %s", laptop.unique_id, reporting_user_id)

    _enqueue_after_commit(hooks, [notification.id])
    return ReportLostResult(message=REPORT_LOST_MESSAGE, laptop=laptop)


def report_found_use_case(
    *,
    db: Session,
    laptop_unique_id: str,
    finder_user_id: UUID,
    hooks: CheckoutLifecycleHooks,
) -> LostFoundEvent:
    """Close the holder's checkout, record how long the laptop was out, thank the finder."""
    now_utc = _required("now_utc", hooks.now_utc)

    laptop = _get_laptop_or_404(db=db, unique_id=laptop_unique_id, lock=True)
    checkout = _active_checkout_for_laptop(db=db, laptop_id=laptop.id, lock=True)
    if checkout is None:
        raise InvalidStateError(code="NOT_FOUND_CHECKOUT", message="No active checkout found for this laptop")

    finder = _get_user_or_404(db=db, user_id=finder_user_id, message="Finder user not found")
    original_user = db.query(User).filter(User.id == checkout.user_id).first()

    now = now_utc()
    duration = elapsed_minutes(since=checkout.checked_out_at, until=now)
    event = LostFoundEvent(
        laptop_id=laptop.id,
        checkout_id=checkout.id,
        original_user_id=checkout.user_id,
        finder_user_id=finder.id,
        event_timestamp=now,
        duration_minutes=duration,
    )
    db.add(event)
    checkout.checked_in_at = now
    checkout.status = COMPLETED_CHECKOUT_STATUS
    laptop.status = "available"
    db.add(
        AuditLog(
            user_id=finder.id,
            action="report_found",
            entity_type="laptop",
            entity_id=laptop.id,
            details={
                "laptopUniqueId": laptop.unique_id,
                "originalUserId": str(checkout.user_id),
                "finderUserId": str(finder.id),
                "durationMinutes": duration,
            },
            created_at=now,
        )
    )

    owner_subject, owner_body = found_owner_message(unique_id=laptop.unique_id, finder_name=finder.name)
    finder_subject, finder_body = found_finder_message(unique_id=laptop.unique_id)
    notifications = [
        NotificationLog(
            notification_type="lost_found",
            recipient_email=original_user.email if original_user else "",
            recipient_user_id=checkout.user_id,
            subject=owner_subject,
            body=owner_body,
            related_entity_type="laptop",
            related_entity_id=laptop.id,
            status="pending",
            retry_count=0,
            created_at=now,
        ),
        NotificationLog(
            notification_type="lost_found",
            recipient_email=finder.email,
            recipient_user_id=finder.id,
            subject=finder_subject,
            body=finder_body,
            related_entity_type="laptop",
            related_entity_id=laptop.id,
            status="pending",
            retry_count=0,
            created_at=now,
        ),
    ]
    for notification in notifications:
        db.add(notification)
    db.commit()
    logger.info(
        "Laptop %s found by user %s after %s minutes", laptop.unique_id, finder.id, duration,
    )

    _enqueue_after_commit(hooks, [notification.id for notification in notifications])
    return event


def get_active_checkouts(*, db: Session, user_id: UUID | None = None) -> list[Checkout]:
    query = db.query(Checkout).filter(Checkout.status == ACTIVE_CHECKOUT_STATUS)
    if user_id is not None:
        query = query.filter(Checkout.user_id == user_id)
    return query.order_by(Checkout.checked_out_at.desc()).all()


def get_checkout_history(
    *,
    db: Session,
    user_id: UUID | None = None,
    laptop_id: UUID | None = None,
) -> list[Checkout]:
    query = db.query(Checkout)
    if user_id is not None:
        query = query.filter(Checkout.user_id == user_id)
    if laptop_id is not None:
        query = query.filter(Checkout.laptop_id == laptop_id)
    return query.order_by(Checkout.checked_out_at.desc()).all()


def get_overdue_checkouts(
    *,
    db: Session,
    threshold_minutes: int = 1440,
    hooks: CheckoutLifecycleHooks,
) -> list[Checkout]:
    now_utc = _required("now_utc", hooks.now_utc)
    return find_overdue_checkouts(db, threshold_minutes=threshold_minutes, at=now_utc())


def get_lost_found_events(*, db: Session) -> list[LostFoundEvent]:
    return db.query(LostFoundEvent).order_by(LostFoundEvent.event_timestamp.desc()).all()


def get_checkout_status(
    *,
    db: Session,
    laptop_unique_id: str,
    requesting_user_id: UUID,
) -> CheckoutStatus:
    """Laptop, its active checkout (if any) and the actions open to the requester."""
    laptop = _get_laptop_or_404(db=db, unique_id=laptop_unique_id)
    checkout = _active_checkout_for_laptop(db=db, laptop_id=laptop.id)
    actions = available_actions(
        laptop_status=laptop.status,
        holder_user_id=checkout.user_id if checkout else None,
        requesting_user_id=requesting_user_id,
    )
    return CheckoutStatus(laptop=laptop, checkout=checkout, available_actions=actions)


def get_current_checkout(*, db: Session, user_id: UUID) -> Checkout | None:
    return db.query(Checkout).filter(
        Checkout.user_id == user_id,
        Checkout.status == ACTIVE_CHECKOUT_STATUS,
    ).first()
