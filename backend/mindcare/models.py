from __future__ import annotations
from typing import Optional, Literal
import datetime as dt
from datetime import datetime, date, time, timezone

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    BigInteger, String, Text, Integer, DateTime, Date, Time, Numeric, Float,
    CheckConstraint, ForeignKey, Index, UniqueConstraint, Boolean, JSON
)
from sqlalchemy.sql.expression import text, true, false

from mindcare.db import Base

# SQLite only auto-increments INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Role = Literal["user", "therapist", "admin"]
AppointmentStatus = Literal["pending", "confirmed", "completed", "cancelled"]
ACTIVE_APPOINTMENT_STATUSES = ("pending", "confirmed")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class User(Base):
    """
    Every account (user, therapist, admin) lives in this table.
    Role is fixed at creation; therapist-only fields are in TherapistProfile.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role in ('user','therapist','admin')", name="ck_users_role"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")

    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    emergency_contact: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # admins only
    permissions: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, server_default=true())
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    therapist_profile: Mapped[Optional["TherapistProfile"]] = relationship(
        back_populates="therapist", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    availability: Mapped[list["TherapistAvailability"]] = relationship(
        back_populates="therapist", cascade="all, delete-orphan"
    )
    user_appointments: Mapped[list["Appointment"]] = relationship(
        foreign_keys="Appointment.user_id", back_populates="user", cascade="all, delete-orphan"
    )
    therapist_appointments: Mapped[list["Appointment"]] = relationship(
        foreign_keys="Appointment.therapist_id", back_populates="therapist", cascade="all, delete-orphan"
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    chat_messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TherapistProfile(Base):
    __tablename__ = "therapist_profiles"

    therapist_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    license_number: Mapped[str] = mapped_column(String(64), nullable=False)
    specializations: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    languages: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # [{degree, institution, year}]
    education: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hourly_rate: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, server_default=false())
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    therapist: Mapped["User"] = relationship(back_populates="therapist_profile")


class TherapistAvailability(Base):
    """Weekly schedule, one row per therapist per weekday."""
    __tablename__ = "therapist_availability"
    __table_args__ = (
        UniqueConstraint("therapist_id", "day", name="uq_availability_therapist_day"),
        CheckConstraint(
            "day in ('monday','tuesday','wednesday','thursday','friday','saturday','sunday')",
            name="ck_availability_day",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    therapist_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    therapist: Mapped["User"] = relationship(back_populates="availability")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "status in ('pending','confirmed','completed','cancelled')",
            name="ck_appointments_status",
        ),
        CheckConstraint(
            "session_type in ('individual','couple','group')",
            name="ck_appointments_session_type",
        ),
        CheckConstraint(
            "session_mode in ('video','audio','chat','in-person')",
            name="ck_appointments_session_mode",
        ),
        CheckConstraint("rating is null or (rating >= 1 and rating <= 5)", name="ck_appointments_rating"),
        Index("idx_appointments_user", "user_id"),
        Index("idx_appointments_therapist_date", "therapist_id", "date"),
        # one live booking per therapist slot; cancelled rows don't block re-booking
        Index(
            "uq_appointments_active_slot",
            "therapist_id", "date", "start_time",
            unique=True,
            postgresql_where=text("status IN ('pending','confirmed')"),
            sqlite_where=text("status IN ('pending','confirmed')"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    therapist_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    session_type: Mapped[str] = mapped_column(String(16), nullable=False, default="individual")
    session_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="video")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    review: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship(foreign_keys=[user_id], back_populates="user_appointments", lazy="selectin")
    therapist: Mapped["User"] = relationship(
        foreign_keys=[therapist_id], back_populates="therapist_appointments", lazy="selectin"
    )


class ChatMessage(Base):
    """Append-only chatbot log, one row per turn."""
    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint("message_type in ('user','ai')", name="ck_chat_messages_type"),
        Index("idx_chat_messages_user_session", "user_id", "session_id"),
        Index("idx_chat_messages_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    message_type: Mapped[str] = mapped_column(String(8), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    intent: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="chat_messages")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="notifications")
