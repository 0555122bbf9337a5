"""Laptop inventory use-cases (admin CRUD, history, QR image)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from ..domain_errors import NotFoundError
from ..models import Checkout, Laptop
from ..schemas import LaptopCreate, LaptopUpdate
from ..services.checkout_rules import generate_laptop_unique_id
from ..services.qr_codes import generate_qr_png, laptop_qr_data_url, laptop_scan_url

logger = logging.getLogger(__name__)

_UNIQUE_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class LaptopHistory:
    laptop: Laptop
    checkouts: list[Checkout]


def _get_laptop_or_404(*, db: Session, laptop_id: UUID) -> Laptop:
    laptop = db.query(Laptop).filter(
        Laptop.id == laptop_id,
        Laptop.deleted_at.is_(None),
    ).first()
    if not laptop:
        raise NotFoundError(code="NOT_FOUND_LAPTOP", message="Laptop not found")
    return laptop


def _new_unique_id(db: Session) -> str:
    for _ in range(_UNIQUE_ID_ATTEMPTS):
        candidate = generate_laptop_unique_id()
        if db.query(Laptop.id).filter(Laptop.unique_id == candidate).first() is None:
            return candidate
    raise RuntimeError("Could not allocate a unique laptop id")


def create_laptop_use_case(*, db: Session, data: LaptopCreate) -> Laptop:
    unique_id = _new_unique_id(db)
    qr_code_url = laptop_qr_data_url(unique_id)

    laptop = Laptop(
        unique_id=unique_id,
        serial_number=data.serial_number,
        make=data.make,
        model=data.model,
        status=data.status,
        qr_code_url=qr_code_url,
    )
    db.add(laptop)
    db.commit()
    db.refresh(laptop)
    logger.info("Registered laptop %s (%s %s)", laptop.unique_id, laptop.make, laptop.model)
    return laptop


def list_laptops(*, db: Session, include_retired: bool = False) -> list[Laptop]:
    query = db.query(Laptop).filter(Laptop.deleted_at.is_(None))
    if not include_retired:
        query = query.filter(Laptop.status != "retired")
    return query.order_by(Laptop.created_at.desc()).all()


def get_laptop(*, db: Session, laptop_id: UUID) -> Laptop:
    return _get_laptop_or_404(db=db, laptop_id=laptop_id)


def get_laptop_by_unique_id(*, db: Session, unique_id: str) -> Laptop:
    laptop = db.query(Laptop).filter(
        Laptop.unique_id == unique_id,
        Laptop.deleted_at.is_(None),
    ).first()
    if not laptop:
        raise NotFoundError(code="NOT_FOUND_LAPTOP", message="Laptop not found")
    return laptop


def get_laptop_history(*, db: Session, laptop_id: UUID) -> LaptopHistory:
    laptop = _get_laptop_or_404(db=db, laptop_id=laptop_id)
    checkouts = db.query(Checkout).filter(
        Checkout.laptop_id == laptop.id,
    ).order_by(Checkout.checked_out_at.desc()).all()
    return LaptopHistory(laptop=laptop, checkouts=checkouts)


def get_laptop_qr_png(*, db: Session, laptop_id: UUID) -> tuple[Laptop, bytes]:
    laptop = _get_laptop_or_404(db=db, laptop_id=laptop_id)
    return laptop, generate_qr_png(laptop_scan_url(laptop.unique_id))


def update_laptop_use_case(*, db: Session, laptop_id: UUID, data: LaptopUpdate) -> Laptop:
    """Update descriptive fields and status; unique_id is never touched."""
    laptop = _get_laptop_or_404(db=db, laptop_id=laptop_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(laptop, field, value)
    db.commit()
    db.refresh(laptop)
    return laptop


def delete_laptop_use_case(*, db: Session, laptop_id: UUID) -> None:
    laptop = _get_laptop_or_404(db=db, laptop_id=laptop_id)
    laptop.deleted_at = datetime.now(timezone.utc)
    db.commit()
