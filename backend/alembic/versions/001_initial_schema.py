"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='interviewer'),
        sa.Column('group_name', sa.String(100), nullable=True),
        sa.Column('team', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'interviewer')", name='chk_user_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'laptops',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('unique_id', sa.String(32), nullable=False),
        sa.Column('serial_number', sa.String(100), nullable=False),
        sa.Column('make', sa.String(100), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('qr_code_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('available', 'checked_out', 'maintenance', 'retired')",
            name='chk_laptop_status',
        ),
    )
    op.create_index('ix_laptops_unique_id', 'laptops', ['unique_id'], unique=True)
    op.create_index('ix_laptops_status', 'laptops', ['status'])

    op.create_table(
        'checkouts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('laptop_id', sa.Uuid(), sa.ForeignKey('laptops.id'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('checked_out_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'completed')", name='chk_checkout_status'),
    )
    op.create_index('ix_checkouts_laptop_id', 'checkouts', ['laptop_id'])
    op.create_index('ix_checkouts_user_id', 'checkouts', ['user_id'])
    op.create_index('ix_checkouts_checked_out_at', 'checkouts', ['checked_out_at'])
    op.create_index('idx_checkouts_status_checked_out_at', 'checkouts', ['status', 'checked_out_at'])
    # At most one active checkout per laptop and per user.
    op.create_index(
        'uq_checkouts_active_laptop', 'checkouts', ['laptop_id'], unique=True,
        postgresql_where=sa.text("status = 'active'"), sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index(
        'uq_checkouts_active_user', 'checkouts', ['user_id'], unique=True,
        postgresql_where=sa.text("status = 'active'"), sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'lost_found_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('laptop_id', sa.Uuid(), sa.ForeignKey('laptops.id'), nullable=False),
        sa.Column('checkout_id', sa.Uuid(), sa.ForeignKey('checkouts.id'), nullable=False, unique=True),
        sa.Column('original_user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('finder_user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.CheckConstraint('duration_minutes >= 0', name='chk_lost_found_duration_non_negative'),
    )
    op.create_index('ix_lost_found_events_laptop_id', 'lost_found_events', ['laptop_id'])
    op.create_index('ix_lost_found_events_event_timestamp', 'lost_found_events', ['event_timestamp'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('details', _json(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "action IN ('checkout', 'checkin', 'report_lost', 'report_found')",
            name='chk_audit_action',
        ),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])

    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('notification_type', sa.String(30), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('recipient_user_id', sa.Uuid(), nullable=True),
        sa.Column('subject', sa.String(500), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('related_entity_type', sa.String(50), nullable=True),
        sa.Column('related_entity_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "notification_type IN ('overdue', 'lost_found', 'user_invitation', 'password_reset')",
            name='chk_notification_type',
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'failed', 'bounced')",
            name='chk_notification_status',
        ),
        sa.CheckConstraint('retry_count >= 0', name='chk_notification_retry_count'),
    )
    op.create_index('ix_notification_logs_recipient_user_id', 'notification_logs', ['recipient_user_id'])
    op.create_index('ix_notification_logs_status', 'notification_logs', ['status'])
    op.create_index('ix_notification_logs_created_at', 'notification_logs', ['created_at'])
    op.create_index(
        'idx_notification_logs_dedup',
        'notification_logs',
        ['notification_type', 'related_entity_type', 'related_entity_id', 'created_at'],
    )


def downgrade() -> None:
    op.drop_table('notification_logs')
    op.drop_table('audit_logs')
    op.drop_table('lost_found_events')
    op.drop_index('uq_checkouts_active_user', table_name='checkouts')
    op.drop_index('uq_checkouts_active_laptop', table_name='checkouts')
    op.drop_table('checkouts')
    op.drop_table('laptops')
    op.drop_table('users')
