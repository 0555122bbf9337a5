"""Authentication and authorization."""
from datetime import timedelta
from typing import Optional
import logging
import time
from uuid import UUID
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .config import settings
from .database import get_db
from .domain_errors import DomainError, ForbiddenError, UnauthorizedError
from .models import User

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)

# Bearer token scheme; missing header is reported through our own error envelope.
security = HTTPBearer(auto_error=False)


def _invalid_token(message: str = "Could not validate credentials") -> UnauthorizedError:
    return UnauthorizedError(code="AUTH_INVALID_TOKEN", message=message)


def validate_new_password(*, new_password: str) -> None:
    """Server-side password policy validation."""
    if new_password is None:
        raise DomainError(code="VAL_INVALID_INPUT", http_status=400, message="Password is required")

    pwd = new_password.strip("\n")
    if len(pwd) < settings.PASSWORD_MIN_LENGTH:
        raise DomainError(
            code="VAL_INVALID_INPUT",
            http_status=400,
            message=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )
    if len(pwd) > settings.PASSWORD_MAX_LENGTH:
        raise DomainError(
            code="VAL_INVALID_INPUT",
            http_status=400,
            message=f"Password must be at most {settings.PASSWORD_MAX_LENGTH} characters",
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        # Invalid/corrupted hash should not crash login flow.
        logger.exception("Password verification failed due to invalid hash format")
        return False


def get_password_hash(password: str) -> str:
    """Hash password."""
    return pwd_context.hash(password)


# Alias for convenience
hash_password = get_password_hash


def token_claims(user: User) -> dict:
    return {"sub": str(user.id), "email": user.email, "role": user.role}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    now = int(time.time())
    if expires_delta:
        exp = now + int(expires_delta.total_seconds())
    else:
        exp = now + int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60
    to_encode.update({"exp": exp, "iat": now, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create JWT refresh token."""
    to_encode = data.copy()
    now = int(time.time())
    exp = now + int(settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS) * 86400
    to_encode.update({"exp": exp, "iat": now, "type": "refresh"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode JWT token, applying our own exp/iat checks with leeway."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise _invalid_token()

    now = int(time.time())
    try:
        exp_int = int(payload.get("exp"))
    except (TypeError, ValueError):
        raise _invalid_token()
    if now > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise _invalid_token("Token expired")

    iat = payload.get("iat")
    if iat is not None:
        try:
            iat_int = int(iat)
        except (TypeError, ValueError):
            raise _invalid_token()
        # Reject tokens issued far in the future (clock skew / malicious tokens).
        if iat_int > now + int(settings.JWT_LEEWAY_SECONDS):
            raise _invalid_token()
    return payload


def parse_token_subject(payload: dict) -> UUID:
    """Parse and validate JWT subject as UUID."""
    sub = payload.get("sub")
    if not sub:
        raise _invalid_token()
    try:
        return UUID(str(sub))
    except ValueError:
        raise _invalid_token()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user (soft-deleted users are rejected)."""
    if credentials is None or not credentials.credentials:
        raise _invalid_token("Not authenticated")
    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise _invalid_token("Invalid token type")

    user_id = parse_token_subject(payload)
    user = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if user is None:
        raise UnauthorizedError(code="AUTH_USER_NOT_FOUND", message="User not found or deleted")
    return user


# Permission checks
class PermissionChecker:
    """Check user permissions based on role."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(self, current_user: User = Depends(get_current_user)):
        """Check if user has required permission."""
        if not check_permission(current_user, self.required_permission):
            raise ForbiddenError(
                code="PERM_ADMIN_REQUIRED",
                message=f"Permission denied: {self.required_permission} required",
            )
        return current_user


# Role permissions matrix
ROLE_PERMISSIONS = {
    "admin": {
        "canUseScanner": True,
        "canViewOverdue": True,
        "canViewLostFound": True,
        "canManageLaptops": True,
        "canManageUsers": True,
        "canViewDashboard": True,
        "canManageNotifications": True,
    },
    "interviewer": {
        "canUseScanner": True,
        "canViewOverdue": False,
        "canViewLostFound": False,
        "canManageLaptops": False,
        "canManageUsers": False,
        "canViewDashboard": False,
        "canManageNotifications": False,
    },
}


def check_permission(user: User, permission: str) -> bool:
    """Check if user has specific permission."""
    permissions = ROLE_PERMISSIONS.get(user.role, {})
    return permissions.get(permission, False)
