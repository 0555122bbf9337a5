"""Checkout / check-in / lost-found endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..celery_app import enqueue_notification_delivery
from ..config import settings
from ..database import get_db
from ..models import Checkout, LostFoundEvent, User
from ..responses import success_response
from ..schemas import (
    AvailableActionsResponse,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutStatusResponse,
    LaptopActionRequest,
    LaptopResponse,
    LostFoundEventResponse,
    ReportFoundRequest,
    ReportLostResponse,
)
from ..services.checkout_rules import now_utc
from ..use_cases.checkout_lifecycle import (
    CheckoutLifecycleHooks,
    checkin_laptop_use_case,
    checkout_laptop_use_case,
    get_active_checkouts,
    get_checkout_history,
    get_checkout_status,
    get_current_checkout,
    get_lost_found_events,
    get_overdue_checkouts,
    report_found_use_case,
    report_lost_use_case,
)

router = APIRouter(prefix="/checkouts", tags=["checkouts"])


def get_lifecycle_hooks() -> CheckoutLifecycleHooks:
    return CheckoutLifecycleHooks(
        enqueue_notification=enqueue_notification_delivery,
        now_utc=now_utc,
        admin_email=settings.ADMIN_NOTIFICATION_EMAIL,
    )


def _to_checkout_out(checkout: Checkout) -> CheckoutResponse:
    return CheckoutResponse.model_validate(checkout)


def _to_lost_found_out(event: LostFoundEvent) -> LostFoundEventResponse:
    return LostFoundEventResponse.model_validate(event)


@router.post("/checkout", status_code=201)
def checkout_laptop(
    data: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hooks: CheckoutLifecycleHooks = Depends(get_lifecycle_hooks),
):
    checkout = checkout_laptop_use_case(
        db=db,
        laptop_unique_id=data.laptop_unique_id,
        user_id=data.user_id,
        hooks=hooks,
    )
    return success_response(_to_checkout_out(checkout), "Laptop checked out successfully")


@router.post("/checkin")
def checkin_laptop(
    data: LaptopActionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hooks: CheckoutLifecycleHooks = Depends(get_lifecycle_hooks),
):
    checkout = checkin_laptop_use_case(
        db=db,
        laptop_unique_id=data.laptop_unique_id,
        requesting_user_id=current_user.id,
        hooks=hooks,
    )
    return success_response(_to_checkout_out(checkout), "Laptop checked in successfully")


@router.post("/report-lost")
def report_lost(
    data: LaptopActionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hooks: CheckoutLifecycleHooks = Depends(get_lifecycle_hooks),
):
    result = report_lost_use_case(
        db=db,
        laptop_unique_id=data.laptop_unique_id,
        reporting_user_id=current_user.id,
        hooks=hooks,
    )
    payload = ReportLostResponse(message=result.message, laptop=LaptopResponse.model_validate(result.laptop))
    return success_response(payload, result.message)


@router.post("/report-found")
def report_found(
    data: ReportFoundRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hooks: CheckoutLifecycleHooks = Depends(get_lifecycle_hooks),
):
    event = report_found_use_case(
        db=db,
        laptop_unique_id=data.laptop_unique_id,
        finder_user_id=data.finder_user_id,
        hooks=hooks,
    )
    return success_response(_to_lost_found_out(event), "Laptop marked as found and returned successfully")


@router.get("/active")
def active_checkouts(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    checkouts = get_active_checkouts(db=db, user_id=user_id)
    return success_response([_to_checkout_out(c) for c in checkouts], "Active checkouts retrieved successfully")


@router.get("/history")
def checkout_history(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    laptop_id: Optional[UUID] = Query(None, alias="laptopId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    checkouts = get_checkout_history(
        db=db,
        user_id=user_id,
        laptop_id=laptop_id,
    )
    return success_response([_to_checkout_out(c) for c in checkouts], "Checkout history retrieved successfully")


@router.get("/overdue")
def overdue_checkouts(
    threshold: int = Query(1440, ge=0),
    current_user: User = Depends(PermissionChecker("canViewOverdue")),
    db: Session = Depends(get_db),
    hooks: CheckoutLifecycleHooks = Depends(get_lifecycle_hooks),
):
    checkouts = get_overdue_checkouts(db=db, threshold_minutes=threshold, hooks=hooks)
    return success_response([_to_checkout_out(c) for c in checkouts], "Overdue checkouts retrieved successfully")


@router.get("/lost-found-events")
def lost_found_events(
    current_user: User = Depends(PermissionChecker("canViewLostFound")),
    db: Session = Depends(get_db),
):
    events = get_lost_found_events(db=db)
    return success_response([_to_lost_found_out(e) for e in events], "Lost/found events retrieved successfully")


@router.get("/status/{laptop_unique_id}")
def checkout_status(
    laptop_unique_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    status = get_checkout_status(db=db, laptop_unique_id=laptop_unique_id, requesting_user_id=current_user.id)
    actions = status.available_actions
    payload = CheckoutStatusResponse(
        laptop=LaptopResponse.model_validate(status.laptop),
        checkout=_to_checkout_out(status.checkout) if status.checkout else None,
        available_actions=AvailableActionsResponse(
            can_checkout=actions.can_checkout,
            can_checkin=actions.can_checkin,
            can_report_lost=actions.can_report_lost,
            can_report_found=actions.can_report_found,
        ),
    )
    return success_response(payload, "Checkout status retrieved successfully")


@router.get("/my-current")
def my_current_checkout(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    checkout = get_current_checkout(db=db, user_id=current_user.id)
    if checkout is None:
        return success_response(None, "No active checkout found")
    return success_response(_to_checkout_out(checkout), "Current checkout retrieved successfully")
