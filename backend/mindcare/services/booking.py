from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.logging import get_logger
from mindcare.models import Appointment, User
from mindcare.schemas import AppointmentBook
from mindcare.services import slots
from mindcare.services.notifications import notify

logger = get_logger(__name__)


class BookingError(ValueError):
    """Business-rule failure (400)."""


class TherapistUnavailable(LookupError):
    """No bookable therapist with that id (404)."""


class SlotConflict(Exception):
    """The requested interval is already taken (409)."""


def session_amount(hourly_rate: float, duration: int) -> float:
    return round(float(hourly_rate or 0) * duration / 60, 2)


async def has_overlap(db: AsyncSession, therapist_id: int, req: AppointmentBook) -> bool:
    wanted = (req.start_time, slots.add_minutes(req.start_time, req.duration))
    booked = await slots.booked_intervals(db, therapist_id, req.date)
    return any(slots.overlaps(wanted, b) for b in booked)


async def bookable_therapist(db: AsyncSession, therapist_id: int) -> Optional[User]:
    """The therapist account if it is active and verified, else None."""
    therapist = await db.get(User, therapist_id)
    if (
        therapist is None
        or therapist.role != "therapist"
        or not therapist.is_active
        or therapist.therapist_profile is None
        or not therapist.therapist_profile.is_verified
    ):
        return None
    return therapist


async def book_appointment(
    db: AsyncSession,
    user: User,
    req: AppointmentBook,
    now: Optional[datetime] = None,
) -> Appointment:
    now = now or datetime.now()

    therapist = await bookable_therapist(db, req.therapist_id)
    if therapist is None:
        raise TherapistUnavailable("Therapist not found")

    if req.date < now.date() or (req.date == now.date() and req.start_time <= now.time()):
        raise BookingError("Cannot book an appointment in the past")

    therapist_id = therapist.id
    window = await slots.day_window(db, therapist_id, req.date)
    if not slots.fits_window(window, req.start_time, req.duration):
        raise BookingError("Therapist is not available at the requested time")

    if await has_overlap(db, therapist_id, req):
        logger.info("booking_conflict", therapist_id=therapist_id, date=str(req.date), stage="precheck")
        raise SlotConflict("Time slot is already booked")

    appt = Appointment(
        user=user,
        therapist=therapist,
        date=req.date,
        start_time=req.start_time,
        end_time=slots.add_minutes(req.start_time, req.duration),
        duration=req.duration,
        session_type=req.session_type,
        session_mode=req.session_mode,
        status="pending",
        amount=session_amount(therapist.therapist_profile.hourly_rate, req.duration),
        notes=req.notes,
    )
    db.add(appt)
    try:
        await db.flush()
    except IntegrityError:
        # lost the race on uq_appointments_active_slot; rollback expires loaded rows
        await db.rollback()
        logger.info("booking_conflict", therapist_id=therapist_id, date=str(req.date), stage="insert")
        raise SlotConflict("Time slot is already booked")

    await notify(
        db,
        therapist_id,
        "appointment_booked",
        f"New appointment request from {user.full_name} on "
        f"{req.date.isoformat()} at {req.start_time.strftime('%H:%M')}.",
    )
    await db.commit()

    logger.info(
        "appointment_booked",
        appointment_id=appt.id,
        therapist_id=therapist_id,
        user_id=user.id,
        duration=req.duration,
    )
    return appt
