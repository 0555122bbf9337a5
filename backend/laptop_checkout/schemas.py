"""Pydantic schemas for API.

Field names are snake_case in Python and camelCase on the wire.
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from uuid import UUID


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# User schemas
class UserBrief(CamelModel):
    """Minimal user projection embedded in checkout payloads (never carries the password hash)."""
    id: UUID
    email: str
    name: str
    role: str


class UserResponse(UserBrief):
    group_name: Optional[str] = None
    team: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserCreate(CamelModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=256)
    name: str = Field(min_length=1, max_length=255)
    role: str = Field(default="interviewer", pattern="^(admin|interviewer)$")
    group_name: Optional[str] = Field(default=None, max_length=100)
    team: Optional[str] = Field(default=None, max_length=100)


class UserUpdate(CamelModel):
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(default=None, min_length=1, max_length=256)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[str] = Field(default=None, pattern="^(admin|interviewer)$")
    group_name: Optional[str] = Field(default=None, max_length=100)
    team: Optional[str] = Field(default=None, max_length=100)


class UserSelfUpdate(CamelModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=256)


# Auth schemas
class LoginRequest(CamelModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=256)


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class TokenResponse(CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


# Laptop schemas
class LaptopCreate(CamelModel):
    serial_number: str = Field(min_length=1, max_length=100)
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    status: str = Field(default="available", pattern="^(available|checked_out|maintenance|retired)$")


class LaptopUpdate(CamelModel):
    serial_number: Optional[str] = Field(default=None, min_length=1, max_length=100)
    make: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    status: Optional[str] = Field(default=None, pattern="^(available|checked_out|maintenance|retired)$")


class LaptopResponse(CamelModel):
    id: UUID
    unique_id: str
    serial_number: str
    make: str
    model: str
    status: str
    qr_code_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Checkout schemas
class CheckoutRequest(CamelModel):
    laptop_unique_id: str = Field(min_length=1, max_length=32)
    user_id: UUID


class LaptopActionRequest(CamelModel):
    """Check-in / report-lost body; the acting user comes from the bearer token."""
    laptop_unique_id: str = Field(min_length=1, max_length=32)


class ReportFoundRequest(CamelModel):
    laptop_unique_id: str = Field(min_length=1, max_length=32)
    finder_user_id: UUID


class CheckoutResponse(CamelModel):
    id: UUID
    laptop_id: UUID
    user_id: UUID
    checked_out_at: datetime
    checked_in_at: Optional[datetime] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    laptop: Optional[LaptopResponse] = None
    user: Optional[UserBrief] = None


class LaptopHistoryResponse(CamelModel):
    laptop: LaptopResponse
    checkouts: list[CheckoutResponse]


class ReportLostResponse(CamelModel):
    message: str
    laptop: LaptopResponse


class LostFoundEventResponse(CamelModel):
    id: UUID
    laptop_id: UUID
    checkout_id: UUID
    original_user_id: UUID
    finder_user_id: UUID
    event_timestamp: datetime
    duration_minutes: int
    laptop: Optional[LaptopResponse] = None
    original_user: Optional[UserBrief] = None
    finder_user: Optional[UserBrief] = None


class AvailableActionsResponse(CamelModel):
    can_checkout: bool
    can_checkin: bool
    can_report_lost: bool
    can_report_found: bool


class CheckoutStatusResponse(CamelModel):
    laptop: LaptopResponse
    checkout: Optional[CheckoutResponse] = None
    available_actions: AvailableActionsResponse


# Dashboard schemas
class DashboardSummaryResponse(CamelModel):
    total_laptops: int
    available_laptops: int
    checked_out_laptops: int
    overdue_laptops: int


# Notification schemas
class NotificationLogResponse(CamelModel):
    id: UUID
    notification_type: str
    recipient_email: str
    recipient_user_id: Optional[UUID] = None
    subject: str
    body: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[UUID] = None
    status: str
    retry_count: int
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationHistoryResponse(CamelModel):
    notifications: list[NotificationLogResponse]
    total: int
    limit: int
    offset: int


class NotificationStatsResponse(CamelModel):
    total: int
    sent: int
    failed: int
    pending: int
    by_type: dict[str, int]
