from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.config import settings
from mindcare.db import get_db
from mindcare.models import User, Appointment
from mindcare.schemas import AppointmentBook, AppointmentOut, AppointmentCancel, AvailableSlots
from mindcare.services import accounts
from mindcare.services.appointments import InvalidTransition, change_status
from mindcare.services.auth_service import get_current_user, get_current_patient
from mindcare.services.booking import (
    BookingError, SlotConflict, TherapistUnavailable, book_appointment, bookable_therapist,
)
from mindcare.services.slots import available_slots_for

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("/book", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def book(
    req: AppointmentBook,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    try:
        appt = await book_appointment(db, current_user, req)
    except TherapistUnavailable as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SlotConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except BookingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return accounts.appointment_dict(appt)


@router.put("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel(
    appointment_id: int,
    req: Optional[AppointmentCancel] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Either party may cancel a pending or confirmed appointment."""
    appt = await db.get(Appointment, appointment_id)
    if appt is None or current_user.id not in (appt.user_id, appt.therapist_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    try:
        await change_status(db, appt, "cancelled", current_user, req.reason if req else None)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return accounts.appointment_dict(appt)


@router.get("/available-slots/{therapist_id}", response_model=AvailableSlots)
async def available_slots(
    therapist_id: int,
    on: date = Query(..., alias="date"),
    duration: Optional[int] = Query(None, ge=15, le=240),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    therapist = await bookable_therapist(db, therapist_id)
    if therapist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Therapist not found")
    minutes = duration or settings.SLOT_MINUTES
    slots = await available_slots_for(db, therapist, on, minutes)
    return {
        "therapist_id": therapist.id,
        "date": on,
        "duration": minutes,
        "available_slots": [{"start_time": s.start_time, "end_time": s.end_time} for s in slots],
    }
