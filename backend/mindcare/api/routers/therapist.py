from __future__ import annotations
import json
import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query, Form, File, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.db import get_db
from mindcare.logging import get_logger
from mindcare.models import User, Appointment
from mindcare.schemas import (
    TherapistDetail, TherapistProfileUpdate, AvailabilityUpdate, AppointmentList, AppointmentOut,
    AppointmentStatusUpdate, TherapistDashboard, TherapistAnalytics, ReviewOut, Period,
)
from mindcare.services import accounts, analytics
from mindcare.services.appointments import InvalidTransition, change_status
from mindcare.services.auth_service import get_current_therapist
from mindcare.services.uploads import UploadRejected, save_profile_image

router = APIRouter(prefix="/therapist", tags=["therapist"])
logger = get_logger(__name__)

PROFILE_FIELDS = {"specializations", "languages", "education", "experience", "bio", "hourly_rate", "license_number"}


def _list_field(name: str, raw: Optional[str]):
    """JSON array or comma-separated text."""
    if raw is None or raw == "":
        return None
    if raw.lstrip().startswith("["):
        try:
            return json.loads(raw)
        except ValueError:
            raise RequestValidationError([
                {"loc": ("body", name), "msg": "must be a JSON array", "type": "value_error.json"}
            ])
    return raw


async def _detail(db: AsyncSession, therapist: User) -> dict:
    return accounts.therapist_dict(therapist, await accounts.availability_of(db, therapist.id))


@router.get("/profile", response_model=TherapistDetail)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    return await _detail(db, current_user)


@router.put("/profile", response_model=TherapistDetail)
async def update_profile(
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    specializations: Optional[str] = Form(None),
    languages: Optional[str] = Form(None),
    education: Optional[str] = Form(None),
    experience: Optional[int] = Form(None),
    hourly_rate: Optional[float] = Form(None),
    license_number: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    raw = {
        "first_name": first_name,
        "last_name": last_name,
        "phone": phone,
        "bio": bio,
        "specializations": _list_field("specializations", specializations),
        "languages": _list_field("languages", languages),
        "education": _list_field("education", education),
        "experience": experience,
        "hourly_rate": hourly_rate,
        "license_number": license_number,
    }
    try:
        profile_in = TherapistProfileUpdate(**{k: v for k, v in raw.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    update_data = profile_in.model_dump(exclude_unset=True)
    if not update_data and profile_image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update.")

    profile = current_user.therapist_profile
    for field, value in update_data.items():
        setattr(profile if field in PROFILE_FIELDS else current_user, field, value)

    if profile_image is not None:
        try:
            current_user.profile_image = await save_profile_image(profile_image, current_user.id)
        except UploadRejected as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    return await _detail(db, current_user)


@router.put("/availability", response_model=TherapistDetail)
async def update_availability(
    req: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    week = {day: slot.model_dump() for day, slot in req.availability.items()}
    await accounts.replace_availability(db, current_user.id, week)
    logger.info("availability_updated", therapist_id=current_user.id, days=sorted(week))
    return await _detail(db, current_user)


@router.get("/appointments", response_model=AppointmentList)
async def list_appointments(
    status_filter: Optional[str] = Query(None, alias="status"),
    on: Optional[date] = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    where = [Appointment.therapist_id == current_user.id]
    if status_filter:
        where.append(Appointment.status == status_filter)
    if on:
        where.append(Appointment.date == on)
    total = (await db.execute(select(func.count(Appointment.id)).where(*where))).scalar() or 0
    res = await db.execute(
        select(Appointment).where(*where)
        .order_by(Appointment.date.desc(), Appointment.start_time.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    return {
        "appointments": [accounts.appointment_dict(a) for a in res.scalars().all()],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.put("/appointments/{appointment_id}/status", response_model=AppointmentOut)
async def update_appointment_status(
    appointment_id: int,
    req: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    appt = await db.get(Appointment, appointment_id)
    if appt is None or appt.therapist_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    try:
        await change_status(db, appt, req.status, current_user, req.reason)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return accounts.appointment_dict(appt)


@router.get("/dashboard", response_model=TherapistDashboard)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    return await analytics.therapist_dashboard(db, current_user.id)


@router.get("/analytics", response_model=TherapistAnalytics)
async def therapist_analytics(
    period: Period = "month",
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    return await analytics.therapist_analytics(db, current_user.id, period, date.today())


@router.get("/reviews", response_model=List[ReviewOut])
async def list_reviews(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_therapist)
):
    res = await db.execute(
        select(Appointment)
        .where(Appointment.therapist_id == current_user.id, Appointment.rating.is_not(None))
        .order_by(Appointment.reviewed_at.desc())
    )
    return [
        {
            "appointment_id": a.id,
            "user_id": a.user_id,
            "user_name": a.user.full_name,
            "rating": a.rating,
            "review": a.review,
            "date": a.reviewed_at,
        }
        for a in res.scalars().all()
    ]
