"""SQLAlchemy models for users, laptops, checkouts and their logs."""
from sqlalchemy import (
    Column, String, Integer, DateTime, Text, JSON, Uuid,
    ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from datetime import datetime, timezone
from .database import Base


USER_ROLES = ("admin", "interviewer")
LAPTOP_STATUSES = ("available", "checked_out", "maintenance", "retired")
CHECKOUT_STATUSES = ("active", "completed")
AUDIT_ACTIONS = ("checkout", "checkin", "report_lost", "report_found")
NOTIFICATION_TYPES = ("overdue", "lost_found", "user_invitation", "password_reset")
NOTIFICATION_STATUSES = ("pending", "sent", "failed", "bounced")

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """User model."""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="interviewer", index=True)
    group_name = Column(String(100), nullable=True)
    team = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now(), onupdate=_utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(role.in_(USER_ROLES), name='chk_user_role'),
    )

    # Relationships
    checkouts = relationship("Checkout", back_populates="user")


class Laptop(Base):
    """Laptop model; unique_id is immutable and encoded in the QR scan URL."""
    __tablename__ = "laptops"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unique_id = Column(String(32), unique=True, nullable=False, index=True)
    serial_number = Column(String(100), nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="available", index=True)
    qr_code_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now(), onupdate=_utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(status.in_(LAPTOP_STATUSES), name='chk_laptop_status'),
    )

    # Relationships
    checkouts = relationship("Checkout", back_populates="laptop")


class Checkout(Base):
    """Checkout record; at most one active row per laptop and per user."""
    __tablename__ = "checkouts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    laptop_id = Column(Uuid(as_uuid=True), ForeignKey("laptops.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now, index=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now(), onupdate=_utc_now)

    __table_args__ = (
        CheckConstraint(status.in_(CHECKOUT_STATUSES), name='chk_checkout_status'),
        Index(
            'uq_checkouts_active_laptop', 'laptop_id', unique=True,
            postgresql_where=(status == 'active'), sqlite_where=(status == 'active'),
        ),
        Index(
            'uq_checkouts_active_user', 'user_id', unique=True,
            postgresql_where=(status == 'active'), sqlite_where=(status == 'active'),
        ),
        Index('idx_checkouts_status_checked_out_at', 'status', 'checked_out_at'),
    )

    # Relationships
    laptop = relationship("Laptop", back_populates="checkouts")
    user = relationship("User", back_populates="checkouts")


class LostFoundEvent(Base):
    """Immutable record of one lost-to-found resolution."""
    __tablename__ = "lost_found_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    laptop_id = Column(Uuid(as_uuid=True), ForeignKey("laptops.id"), nullable=False, index=True)
    checkout_id = Column(Uuid(as_uuid=True), ForeignKey("checkouts.id"), nullable=False, unique=True)
    original_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    finder_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    event_timestamp = Column(DateTime(timezone=True), nullable=False, default=_utc_now, index=True)
    duration_minutes = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(duration_minutes >= 0, name='chk_lost_found_duration_non_negative'),
    )

    # Relationships
    laptop = relationship("Laptop")
    checkout = relationship("Checkout")
    original_user = relationship("User", foreign_keys=[original_user_id])
    finder_user = relationship("User", foreign_keys=[finder_user_id])


class AuditLog(Base):
    """Append-only audit row, one per state-changing lifecycle operation."""
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    details = Column(JSONType, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(action.in_(AUDIT_ACTIONS), name='chk_audit_action'),
        Index('idx_audit_logs_entity', 'entity_type', 'entity_id'),
    )


class NotificationLog(Base):
    """
    One row per notification, updated in place as delivery is attempted.
    Referenced entities are addressed by (related_entity_type, related_entity_id), not foreign keys.
    """
    __tablename__ = "notification_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    notification_type = Column(String(30), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    recipient_user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=True)
    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(notification_type.in_(NOTIFICATION_TYPES), name='chk_notification_type'),
        CheckConstraint(status.in_(NOTIFICATION_STATUSES), name='chk_notification_status'),
        CheckConstraint(retry_count >= 0, name='chk_notification_retry_count'),
        # Overdue de-duplication lookup.
        Index(
            'idx_notification_logs_dedup',
            'notification_type', 'related_entity_type', 'related_entity_id', 'created_at',
        ),
    )
