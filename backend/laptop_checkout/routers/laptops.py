"""Laptop inventory endpoints."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from uuid import UUID
from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import User
from ..responses import success_response
from ..schemas import CheckoutResponse, LaptopCreate, LaptopHistoryResponse, LaptopResponse, LaptopUpdate
from ..use_cases.laptop_inventory import (
    create_laptop_use_case,
    delete_laptop_use_case,
    get_laptop,
    get_laptop_by_unique_id,
    get_laptop_history,
    get_laptop_qr_png,
    list_laptops,
    update_laptop_use_case,
)

router = APIRouter(prefix="/laptops", tags=["laptops"])


@router.post("", status_code=201)
def create_laptop(
    data: LaptopCreate,
    current_user: User = Depends(PermissionChecker("canManageLaptops")),
    db: Session = Depends(get_db),
):
    """Register laptop; assigns uniqueId and QR code."""
    laptop = create_laptop_use_case(db=db, data=data)
    return success_response(LaptopResponse.model_validate(laptop), "Laptop created successfully")


@router.get("")
def get_laptops(
    include_retired: bool = Query(False, alias="includeRetired"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    laptops = list_laptops(db=db, include_retired=include_retired)
    return success_response([LaptopResponse.model_validate(l) for l in laptops], "Laptops retrieved successfully")


@router.get("/unique/{unique_id}")
def get_laptop_by_unique(
    unique_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    laptop = get_laptop_by_unique_id(db=db, unique_id=unique_id)
    return success_response(LaptopResponse.model_validate(laptop), "Laptop retrieved successfully")


@router.get("/{laptop_id}/history")
def get_history(
    laptop_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageLaptops")),
    db: Session = Depends(get_db),
):
    history = get_laptop_history(db=db, laptop_id=laptop_id)
    payload = LaptopHistoryResponse(
        laptop=LaptopResponse.model_validate(history.laptop),
        checkouts=[CheckoutResponse.model_validate(c) for c in history.checkouts],
    )
    return success_response(payload, "Laptop history retrieved successfully")


@router.get("/{laptop_id}/qr-code")
def get_qr_code(
    laptop_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageLaptops")),
    db: Session = Depends(get_db),
):
    """QR code PNG download."""
    laptop, png = get_laptop_qr_png(db=db, laptop_id=laptop_id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{laptop.unique_id}-qr.png"'},
    )


@router.get("/{laptop_id}")
def get_laptop_by_id(
    laptop_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    laptop = get_laptop(db=db, laptop_id=laptop_id)
    return success_response(LaptopResponse.model_validate(laptop), "Laptop retrieved successfully")


@router.patch("/{laptop_id}")
def update_laptop(
    laptop_id: UUID,
    data: LaptopUpdate,
    current_user: User = Depends(PermissionChecker("canManageLaptops")),
    db: Session = Depends(get_db),
):
    laptop = update_laptop_use_case(db=db, laptop_id=laptop_id, data=data)
    return success_response(LaptopResponse.model_validate(laptop), "Laptop updated successfully")


@router.delete("/{laptop_id}")
def delete_laptop(
    laptop_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageLaptops")),
    db: Session = Depends(get_db),
):
    """Soft delete laptop."""
    delete_laptop_use_case(db=db, laptop_id=laptop_id)
    return success_response(None, "Laptop deleted successfully")
