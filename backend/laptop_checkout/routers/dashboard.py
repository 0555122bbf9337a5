"""Admin dashboard endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..config import settings
from ..database import get_db
from ..models import User
from ..responses import success_response
from ..schemas import CheckoutResponse, DashboardSummaryResponse, LostFoundEventResponse
from ..services.checkout_rules import now_utc
from ..use_cases.dashboard import active_checkouts, dashboard_summary, recent_lost_found_events
from ..services.notification_dispatch import find_overdue_checkouts

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def get_summary(
    current_user: User = Depends(PermissionChecker("canViewDashboard")),
    db: Session = Depends(get_db),
):
    counts = dashboard_summary(
        db=db,
        at=now_utc(),
        threshold_minutes=settings.OVERDUE_THRESHOLD_MINUTES,
    )
    return success_response(DashboardSummaryResponse(**counts), "Dashboard summary retrieved successfully")


@router.get("/active-checkouts")
def get_active_checkouts(
    current_user: User = Depends(PermissionChecker("canViewDashboard")),
    db: Session = Depends(get_db),
):
    checkouts = active_checkouts(db=db)
    return success_response(
        [CheckoutResponse.model_validate(c) for c in checkouts],
        "Active checkouts retrieved successfully",
    )


@router.get("/overdue")
def get_overdue(
    current_user: User = Depends(PermissionChecker("canViewDashboard")),
    db: Session = Depends(get_db),
):
    checkouts = find_overdue_checkouts(
        db,
        threshold_minutes=settings.OVERDUE_THRESHOLD_MINUTES,
        at=now_utc(),
    )
    return success_response(
        [CheckoutResponse.model_validate(c) for c in checkouts],
        "Overdue checkouts retrieved successfully",
    )


@router.get("/lost-found")
def get_recent_lost_found(
    current_user: User = Depends(PermissionChecker("canViewDashboard")),
    db: Session = Depends(get_db),
):
    """Lost/found events from the last 30 days, newest first."""
    events = recent_lost_found_events(db=db, at=now_utc())
    return success_response(
        [LostFoundEventResponse.model_validate(e) for e in events],
        "Recent lost/found events retrieved successfully",
    )
