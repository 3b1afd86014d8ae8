import json
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Form, File, UploadFile, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.db import get_db
from mindcare.logging import get_logger
from mindcare.models import User, TherapistProfile, Appointment
from mindcare.schemas import (
    UserProfile, UserProfileUpdate, PasswordChange, TherapistList, TherapistDetail,
    AppointmentOut, AppointmentList, ReviewCreate,
)
from mindcare.services import accounts
from mindcare.services.auth_service import get_current_patient, hash_password, verify_password
from mindcare.services.notifications import notify
from mindcare.services.uploads import UploadRejected, save_profile_image

router = APIRouter(prefix="/user", tags=["user"])
logger = get_logger(__name__)


def _json_field(name: str, raw: Optional[str]):
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise RequestValidationError([
            {"loc": ("body", name), "msg": "must be a JSON object", "type": "value_error.json"}
        ])


# [1] profile
@router.get("/profile", response_model=UserProfile)
async def get_user_profile(current_user: User = Depends(get_current_patient)):
    return accounts.profile_dict(current_user)


@router.put("/profile", response_model=UserProfile)
async def update_user_profile(
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    emergency_contact: Optional[str] = Form(None),
    preferences: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    """
    Multipart update. emergency_contact / preferences arrive as JSON strings,
    profile_image is an optional file.
    """
    raw = {
        "first_name": first_name,
        "last_name": last_name,
        "phone": phone,
        "date_of_birth": date_of_birth or None,
        "gender": gender,
        "emergency_contact": _json_field("emergency_contact", emergency_contact),
        "preferences": _json_field("preferences", preferences),
    }
    try:
        profile_in = UserProfileUpdate(**{k: v for k, v in raw.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    update_data = profile_in.model_dump(exclude_unset=True)
    if not update_data and profile_image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update.")

    for field, value in update_data.items():
        setattr(current_user, field, value)

    if profile_image is not None:
        try:
            current_user.profile_image = await save_profile_image(profile_image, current_user.id)
        except UploadRejected as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    await db.refresh(current_user)
    return accounts.profile_dict(current_user)


@router.put("/change-password")
async def change_password(
    req: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    if not verify_password(req.current_password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    current_user.password_hash = hash_password(req.new_password)
    await db.commit()
    logger.info("password_changed", user_id=current_user.id)
    return {"message": "Password updated successfully"}


# [2] account deactivation
@router.delete("/deactivate", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user_account(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    """Soft delete: the account stays for appointment history but can no longer log in."""
    current_user.is_active = False
    await db.commit()
    logger.info("account_deactivated", user_id=current_user.id)
    return


# [3] therapist directory
def _matches(values, wanted: Optional[str]) -> bool:
    if not wanted:
        return True
    wanted = wanted.lower()
    return any(wanted in (v or "").lower() for v in values or [])


@router.get("/therapists", response_model=TherapistList)
async def list_therapists(
    search: Optional[str] = None,
    specialization: Optional[str] = None,
    language: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    q = (
        select(User)
        .join(TherapistProfile, TherapistProfile.therapist_id == User.id)
        .where(User.role == "therapist", User.is_active.is_(True), TherapistProfile.is_verified.is_(True))
    )
    if search:
        like = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(User.first_name).like(like),
            func.lower(User.last_name).like(like),
            func.lower(TherapistProfile.bio).like(like),
        ))
    q = q.order_by(TherapistProfile.rating.desc(), User.id)
    res = await db.execute(q)

    # list filters run in python; JSON containment differs per dialect
    therapists = [
        t for t in res.scalars().all()
        if _matches(t.therapist_profile.specializations, specialization)
        and _matches(t.therapist_profile.languages, language)
    ]
    total = len(therapists)
    chunk = therapists[(page - 1) * limit: page * limit]
    return {
        "therapists": [accounts.therapist_dict(t) for t in chunk],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/therapists/{therapist_id}", response_model=TherapistDetail)
async def get_therapist(
    therapist_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    therapist = await db.get(User, therapist_id)
    if (
        therapist is None
        or therapist.role != "therapist"
        or not therapist.is_active
        or not therapist.therapist_profile.is_verified
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Therapist not found")
    availability = await accounts.availability_of(db, therapist.id)
    return accounts.therapist_dict(therapist, availability)


# [4] own appointments
@router.get("/appointments", response_model=AppointmentList)
async def list_my_appointments(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    where = [Appointment.user_id == current_user.id]
    if status_filter:
        where.append(Appointment.status == status_filter)
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


async def _own_appointment(db: AsyncSession, appointment_id: int, user: User) -> Appointment:
    appt = await db.get(Appointment, appointment_id)
    if appt is None or appt.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return appt


@router.get("/appointments/{appointment_id}", response_model=AppointmentOut)
async def get_my_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    return accounts.appointment_dict(await _own_appointment(db, appointment_id, current_user))


@router.post("/appointments/{appointment_id}/review", response_model=AppointmentOut)
async def review_appointment(
    appointment_id: int,
    req: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    appt = await _own_appointment(db, appointment_id, current_user)
    if appt.status != "completed":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only completed appointments can be reviewed")
    if appt.rating is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Appointment has already been reviewed")

    # only the first writer matches rating IS NULL
    result = await db.execute(
        update(Appointment)
        .where(Appointment.id == appt.id, Appointment.rating.is_(None))
        .values(rating=req.rating, review=req.review, reviewed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Appointment has already been reviewed")

    profile = await accounts.refresh_rating(db, appt.therapist_id)
    await notify(
        db, appt.therapist_id, "review_received",
        f"{current_user.full_name} left a {req.rating}-star review.",
    )
    await db.commit()
    await db.refresh(appt)
    logger.info(
        "appointment_reviewed",
        appointment_id=appt.id,
        therapist_id=appt.therapist_id,
        rating=req.rating,
        therapist_rating=profile.rating,
    )
    return accounts.appointment_dict(appt)
