"""
Bookable slot computation.

compute_available_slots is pure; available_slots_for loads the therapist's
weekday window and that day's live appointments and hands them over.
"""
from __future__ import annotations
from datetime import date, datetime, time
from typing import Iterable, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.models import (
    ACTIVE_APPOINTMENT_STATUSES, WEEKDAYS, Appointment, TherapistAvailability, User,
)

Window = Tuple[time, time]


class Slot(NamedTuple):
    start_time: time
    end_time: time


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _from_minutes(m: int) -> time:
    return time(m // 60, m % 60)


def add_minutes(t: time, minutes: int) -> time:
    """t + minutes, clamped to the same day (23:59 at most)."""
    total = min(_minutes(t) + minutes, 24 * 60 - 1)
    return _from_minutes(total)


def overlaps(a: Window, b: Window) -> bool:
    # half-open: [09:00,10:00) and [10:00,11:00) do not overlap
    return a[0] < b[1] and b[0] < a[1]


def compute_available_slots(
    window: Optional[Window],
    booked: Iterable[Window],
    slot_minutes: int,
    not_before: Optional[time] = None,
) -> list[Slot]:
    if window is None or slot_minutes <= 0:
        return []

    start, end = _minutes(window[0]), _minutes(window[1])
    busy = [(_minutes(s), _minutes(e)) for s, e in booked]
    floor = _minutes(not_before) if not_before is not None else None

    slots: list[Slot] = []
    t = start
    while t + slot_minutes <= end:
        candidate = (t, t + slot_minutes)
        if floor is not None and t < floor:
            t += slot_minutes
            continue
        if not any(overlaps(candidate, b) for b in busy):
            slots.append(Slot(_from_minutes(candidate[0]), _from_minutes(candidate[1])))
        t += slot_minutes
    return slots


def weekday_name(d: date) -> str:
    return WEEKDAYS[d.weekday()]


async def day_window(db: AsyncSession, therapist_id: int, d: date) -> Optional[Window]:
    res = await db.execute(
        select(TherapistAvailability).where(
            TherapistAvailability.therapist_id == therapist_id,
            TherapistAvailability.day == weekday_name(d),
        )
    )
    row = res.scalar_one_or_none()
    if row is None or not row.available:
        return None
    return row.start_time, row.end_time


async def booked_intervals(db: AsyncSession, therapist_id: int, d: date) -> Sequence[Window]:
    res = await db.execute(
        select(Appointment.start_time, Appointment.end_time).where(
            Appointment.therapist_id == therapist_id,
            Appointment.date == d,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
        )
    )
    return [(s, e) for s, e in res.all()]


async def available_slots_for(
    db: AsyncSession,
    therapist: User,
    d: date,
    slot_minutes: int,
    now: Optional[datetime] = None,
) -> list[Slot]:
    now = now or datetime.now()
    if d < now.date():
        return []

    window = await day_window(db, therapist.id, d)
    if window is None:
        return []
    booked = await booked_intervals(db, therapist.id, d)

    not_before = None
    if d == now.date():
        # next whole minute, so a slot starting right now is already gone
        not_before = add_minutes(now.time().replace(second=0, microsecond=0), 1)
    return compute_available_slots(window, booked, slot_minutes, not_before)


def fits_window(window: Optional[Window], start: time, duration: int) -> bool:
    if window is None:
        return False
    s = _minutes(start)
    return s >= _minutes(window[0]) and s + duration <= _minutes(window[1])
