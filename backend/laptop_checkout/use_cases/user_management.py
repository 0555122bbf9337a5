"""User administration use-cases."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from ..auth import hash_password, validate_new_password
from ..domain_errors import ConflictError, InvalidStateError, NotFoundError
from ..models import Checkout, User
from ..schemas import UserCreate, UserSelfUpdate, UserUpdate


def _get_user_or_404(*, db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.deleted_at.is_(None),
    ).first()
    if not user:
        raise NotFoundError(code="NOT_FOUND_USER", message="User not found")
    return user


def _ensure_email_free(*, db: Session, email: str, exclude_user_id: UUID | None = None) -> None:
    # Soft-deleted rows keep their email; the unique index still covers them.
    query = db.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise ConflictError(code="BIZ_EMAIL_ALREADY_EXISTS", message="User with this email already exists")


def create_user_use_case(*, db: Session, data: UserCreate) -> User:
    _ensure_email_free(db=db, email=data.email)
    validate_new_password(new_password=data.password)

    user = User(
        email=data.email,
        password_hash=hash_password(data.password),
        name=data.name,
        role=data.role,
        group_name=data.group_name,
        team=data.team,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(*, db: Session) -> list[User]:
    return db.query(User).filter(User.deleted_at.is_(None)).order_by(User.created_at.desc()).all()


def get_user(*, db: Session, user_id: UUID) -> User:
    return _get_user_or_404(db=db, user_id=user_id)


def update_user_use_case(*, db: Session, user_id: UUID, data: UserUpdate) -> User:
    user = _get_user_or_404(db=db, user_id=user_id)
    changes = data.model_dump(exclude_unset=True)

    if "email" in changes and changes["email"] != user.email:
        _ensure_email_free(db=db, email=changes["email"], exclude_user_id=user.id)
    password = changes.pop("password", None)
    if password is not None:
        validate_new_password(new_password=password)
        user.password_hash = hash_password(password)

    for field, value in changes.items():
        if field in {"email", "name", "role"} and value is None:
            continue
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


def update_me_use_case(*, db: Session, current_user: User, data: UserSelfUpdate) -> User:
    """Self-service profile update (name and password only)."""
    if data.name is not None:
        current_user.name = data.name
    if data.password is not None:
        validate_new_password(new_password=data.password)
        current_user.password_hash = hash_password(data.password)
    db.commit()
    db.refresh(current_user)
    return current_user


def delete_user_use_case(*, db: Session, user_id: UUID) -> None:
    """Soft delete; refused while the user holds a laptop."""
    user = _get_user_or_404(db=db, user_id=user_id)
    active = db.query(Checkout.id).filter(
        Checkout.user_id == user.id,
        Checkout.status == "active",
    ).first()
    if active is not None:
        raise InvalidStateError(
            code="BIZ_USER_HAS_ACTIVE_CHECKOUT",
            message="Cannot delete user with an active checkout",
        )
    user.deleted_at = datetime.now(timezone.utc)
    db.commit()
