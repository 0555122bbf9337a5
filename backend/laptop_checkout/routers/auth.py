"""Auth endpoints."""
import ipaddress
import logging

import redis
from redis.exceptions import RedisError
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    parse_token_subject,
    token_claims,
    verify_password,
)
from ..config import settings
from ..database import get_db
from ..domain_errors import DomainError, UnauthorizedError
from ..models import User
from ..responses import success_response
from ..schemas import LoginRequest, RefreshTokenRequest, TokenResponse, UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


_redis_client = None


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def _get_client_ip(request: Request) -> str:
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For may contain a list: client, proxy1, proxy2
            candidate = forwarded.split(",")[0].strip()
            try:
                ipaddress.ip_address(candidate)
                return candidate
            except ValueError:
                pass

    if request.client:
        return request.client.host
    return "unknown"


def _incr_with_ttl(key: str, ttl_seconds: int) -> tuple[int, int]:
    """
    Increment a Redis counter and ensure it has an expiry.
    Returns (value, ttl_remaining_seconds).
    """
    r = _get_redis()
    value = r.incr(key)
    if value == 1:
        r.expire(key, ttl_seconds)
    ttl = r.ttl(key)
    if ttl is None or ttl < 0:
        ttl = ttl_seconds
    return int(value), int(ttl)


def _enforce_login_rate_limit(request: Request) -> None:
    ip = _get_client_ip(request)
    try:
        attempts, ttl = _incr_with_ttl(f"auth:rl:login:ip:{ip}", 60)
    except RedisError:
        # Fail open if Redis is down to avoid total auth outage.
        logger.exception("Redis error during login rate limiting (fail-open)")
        return
    if attempts > settings.AUTH_LOGIN_IP_LIMIT_PER_MINUTE:
        logger.warning("Login rate limit exceeded for %s", ip)
        raise DomainError(
            code="AUTH_RATE_LIMITED",
            http_status=429,
            message="Too many login attempts. Try again later.",
            details={"retryAfterSeconds": ttl},
        )


def _issue_tokens(user: User) -> TokenResponse:
    claims = token_claims(user)
    return TokenResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        expires_in=int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60,
    )


@router.post("/login")
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Login with email and password."""
    _enforce_login_rate_limit(request)

    user = db.query(User).filter(
        User.email == payload.email,
        User.deleted_at.is_(None),
    ).first()
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for %s from %s", payload.email, _get_client_ip(request))
        raise UnauthorizedError(code="AUTH_INVALID_CREDENTIALS", message="Invalid email or password")

    logger.info("User %s logged in", user.id)
    return success_response(_issue_tokens(user), "Login successful")


@router.post("/refresh-token")
def refresh_token(payload: RefreshTokenRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    claims = decode_token(payload.refresh_token)
    if claims.get("type") != "refresh":
        raise UnauthorizedError(code="AUTH_INVALID_TOKEN", message="Invalid token type")

    user_id = parse_token_subject(claims)
    user = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if user is None:
        raise UnauthorizedError(code="AUTH_INVALID_TOKEN", message="Invalid refresh token")
    return success_response(_issue_tokens(user), "Token refreshed successfully")


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success_response(UserResponse.model_validate(current_user), "User profile retrieved successfully")


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    """Stateless JWT: the client discards its tokens."""
    logger.info("User %s logged out", current_user.id)
    return success_response(None, "Logged out successfully")
