"""initial schema

Revision ID: 3a1f9c2e7b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a1f9c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
ACTIVE = sa.text("status IN ('pending','confirmed')")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('last_name', sa.String(80), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(32), nullable=True),
        sa.Column('emergency_contact', sa.JSON(), nullable=True),
        sa.Column('preferences', sa.JSON(), nullable=True),
        sa.Column('profile_image', sa.Text(), nullable=True),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("role in ('user','therapist','admin')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_users_role', 'users', ['role'])

    op.create_table(
        'therapist_profiles',
        sa.Column('therapist_id', BigIntPK, sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('license_number', sa.String(64), nullable=False),
        sa.Column('specializations', sa.JSON(), nullable=False),
        sa.Column('languages', sa.JSON(), nullable=False),
        sa.Column('education', sa.JSON(), nullable=False),
        sa.Column('experience', sa.Integer(), nullable=False),
        sa.Column('bio', sa.Text(), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('total_reviews', sa.Integer(), nullable=False),
    )

    op.create_table(
        'therapist_availability',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('therapist_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day', sa.String(16), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('available', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('therapist_id', 'day', name='uq_availability_therapist_day'),
        sa.CheckConstraint(
            "day in ('monday','tuesday','wednesday','thursday','friday','saturday','sunday')",
            name='ck_availability_day',
        ),
    )

    op.create_table(
        'appointments',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('therapist_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('session_type', sa.String(16), nullable=False),
        sa.Column('session_mode', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(16), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('review', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status in ('pending','confirmed','completed','cancelled')", name='ck_appointments_status'),
        sa.CheckConstraint("session_type in ('individual','couple','group')", name='ck_appointments_session_type'),
        sa.CheckConstraint("session_mode in ('video','audio','chat','in-person')", name='ck_appointments_session_mode'),
        sa.CheckConstraint("rating is null or (rating >= 1 and rating <= 5)", name='ck_appointments_rating'),
    )
    op.create_index('idx_appointments_user', 'appointments', ['user_id'])
    op.create_index('idx_appointments_therapist_date', 'appointments', ['therapist_id', 'date'])
    op.create_index(
        'uq_appointments_active_slot',
        'appointments',
        ['therapist_id', 'date', 'start_time'],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        'chat_messages',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_id', sa.String(64), nullable=False),
        sa.Column('message_type', sa.String(8), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('intent', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("message_type in ('user','ai')", name='ck_chat_messages_type'),
    )
    op.create_index('idx_chat_messages_user_session', 'chat_messages', ['user_id', 'session_id'])
    op.create_index('idx_chat_messages_created', 'chat_messages', ['created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_notifications_user_created', 'notifications', ['user_id', 'created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('notifications')
    op.drop_table('chat_messages')
    op.drop_index('uq_appointments_active_slot', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('therapist_availability')
    op.drop_table('therapist_profiles')
    op.drop_table('users')
