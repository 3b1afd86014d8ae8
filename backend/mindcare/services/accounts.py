"""
Account creation and the dict builders the routers hand to response models.
"""
from __future__ import annotations
from datetime import time
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.models import (
    WEEKDAYS, Appointment, TherapistAvailability, TherapistProfile, User,
)
from mindcare.services.auth_service import hash_password

DEFAULT_ADMIN_PERMISSIONS = [
    "manage_users", "manage_therapists", "view_analytics", "manage_appointments",
]

# weekday -> (start, end, available)
DEFAULT_WEEK = {
    **{d: (time(9, 0), time(17, 0), True) for d in WEEKDAYS[:5]},
    **{d: (time(10, 0), time(15, 0), False) for d in WEEKDAYS[5:]},
}


class EmailTaken(ValueError):
    pass


async def email_exists(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    q = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    res = await db.execute(q)
    return res.first() is not None


async def create_account(db: AsyncSession, role: str, data: dict, profile: Optional[dict] = None) -> User:
    """
    Insert an account (and, for therapists, the profile plus the default
    week). Raises EmailTaken. Commits.
    """
    email = data["email"].lower()
    if await email_exists(db, email):
        raise EmailTaken(email)

    user = User(
        email=email,
        password_hash=hash_password(data["password"]),
        role=role,
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        phone=data.get("phone"),
        permissions=list(DEFAULT_ADMIN_PERMISSIONS) if role == "admin" else None,
    )
    if role == "therapist":
        profile = profile or {}
        user.therapist_profile = TherapistProfile(
            license_number=profile["license_number"],
            specializations=profile.get("specializations", []),
            languages=profile.get("languages", []),
            education=profile.get("education", []),
            experience=profile.get("experience", 0),
            bio=profile.get("bio", ""),
            hourly_rate=profile.get("hourly_rate", 0),
        )
        user.availability = [
            TherapistAvailability(day=day, start_time=s, end_time=e, available=on)
            for day, (s, e, on) in DEFAULT_WEEK.items()
        ]
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def availability_of(db: AsyncSession, therapist_id: int) -> dict:
    res = await db.execute(
        select(TherapistAvailability).where(TherapistAvailability.therapist_id == therapist_id)
    )
    rows = {r.day: r for r in res.scalars().all()}
    return {
        day: {"start": rows[day].start_time, "end": rows[day].end_time, "available": rows[day].available}
        for day in WEEKDAYS if day in rows
    }


async def replace_availability(db: AsyncSession, therapist_id: int, week: dict) -> dict:
    """Upsert the given weekdays. Days not in `week` keep their current row."""
    res = await db.execute(
        select(TherapistAvailability).where(TherapistAvailability.therapist_id == therapist_id)
    )
    rows = {r.day: r for r in res.scalars().all()}
    for day, slot in week.items():
        row = rows.get(day)
        if row is None:
            row = TherapistAvailability(therapist_id=therapist_id, day=day)
            db.add(row)
        row.start_time = slot["start"]
        row.end_time = slot["end"]
        row.available = slot["available"]
    await db.commit()
    return await availability_of(db, therapist_id)


def account_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "profile_image": user.profile_image,
        "is_active": user.is_active,
        "last_login": user.last_login,
        "created_at": user.created_at,
    }


def profile_dict(user: User) -> dict:
    return {
        **account_dict(user),
        "date_of_birth": user.date_of_birth,
        "gender": user.gender,
        "emergency_contact": user.emergency_contact,
        "preferences": user.preferences,
    }


def therapist_dict(user: User, availability: Optional[dict] = None) -> dict:
    p = user.therapist_profile
    out = {
        **account_dict(user),
        "specializations": p.specializations if p else [],
        "languages": p.languages if p else [],
        "experience": p.experience if p else 0,
        "bio": p.bio if p else "",
        "hourly_rate": float(p.hourly_rate) if p else 0.0,
        "is_verified": p.is_verified if p else False,
        "rating": p.rating if p else 0.0,
        "total_reviews": p.total_reviews if p else 0,
    }
    if availability is not None:
        out["license_number"] = p.license_number if p else ""
        out["education"] = p.education if p else []
        out["availability"] = availability
    return out


def appointment_dict(appt: Appointment) -> dict:
    return {
        "id": appt.id,
        "user_id": appt.user_id,
        "therapist_id": appt.therapist_id,
        "user_name": appt.user.full_name if appt.user else "",
        "therapist_name": appt.therapist.full_name if appt.therapist else "",
        "date": appt.date,
        "start_time": appt.start_time,
        "end_time": appt.end_time,
        "duration": appt.duration,
        "session_type": appt.session_type,
        "session_mode": appt.session_mode,
        "status": appt.status,
        "amount": float(appt.amount or 0),
        "notes": appt.notes,
        "cancellation_reason": appt.cancellation_reason,
        "cancelled_by": appt.cancelled_by,
        "rating": appt.rating,
        "review": appt.review,
        "reviewed_at": appt.reviewed_at,
        "created_at": appt.created_at,
    }


async def refresh_rating(db: AsyncSession, therapist_id: int) -> TherapistProfile:
    """Recompute rating/total_reviews from every reviewed appointment (no commit)."""
    res = await db.execute(
        select(func.avg(Appointment.rating), func.count(Appointment.rating)).where(
            Appointment.therapist_id == therapist_id,
            Appointment.rating.is_not(None),
        )
    )
    avg, count = res.one()
    profile = await db.get(TherapistProfile, therapist_id)
    profile.rating = round(float(avg or 0), 2)
    profile.total_reviews = int(count or 0)
    return profile
