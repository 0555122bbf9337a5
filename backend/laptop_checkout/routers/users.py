"""User endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
from ..database import get_db
from ..models import User
from ..responses import success_response
from ..schemas import UserCreate, UserResponse, UserSelfUpdate, UserUpdate
from ..auth import PermissionChecker, get_current_user
from ..use_cases.user_management import (
    create_user_use_case,
    delete_user_use_case,
    get_user as get_user_use_case,
    list_users,
    update_me_use_case,
    update_user_use_case,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
def create_user(
    data: UserCreate,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Create user (admin)."""
    user = create_user_use_case(db=db, data=data)
    return success_response(UserResponse.model_validate(user), "User created successfully")


@router.get("")
def get_users(
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Get all users."""
    users = list_users(db=db)
    return success_response([UserResponse.model_validate(u) for u in users], "Users retrieved successfully")


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return success_response(UserResponse.model_validate(current_user), "Profile retrieved successfully")


@router.patch("/me")
def update_me(
    data: UserSelfUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = update_me_use_case(db=db, current_user=current_user, data=data)
    return success_response(UserResponse.model_validate(user), "Profile updated successfully")


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Get user by ID."""
    user = get_user_use_case(db=db, user_id=user_id)
    return success_response(UserResponse.model_validate(user), "User retrieved successfully")


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    data: UserUpdate,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    user = update_user_use_case(db=db, user_id=user_id, data=data)
    return success_response(UserResponse.model_validate(user), "User updated successfully")


@router.delete("/{user_id}")
def delete_user(
    user_id: UUID,
    current_user: User = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Soft delete user."""
    delete_user_use_case(db=db, user_id=user_id)
    return success_response(None, "User deleted successfully")
