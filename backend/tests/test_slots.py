"""
Tests for slot computation.
"""
from datetime import datetime, time, timedelta

import pytest

from mindcare.models import Appointment
from mindcare.services.slots import (
    Slot, available_slots_for, compute_available_slots, fits_window, overlaps,
)
from conftest import next_weekday

NINE_TO_FIVE = (time(9, 0), time(17, 0))


class TestComputeAvailableSlots:

    def test_full_day_hourly(self):
        slots = compute_available_slots(NINE_TO_FIVE, [], 60)
        assert len(slots) == 8
        assert slots[0] == Slot(time(9, 0), time(10, 0))
        assert slots[-1] == Slot(time(16, 0), time(17, 0))

    def test_disabled_day_has_no_slots(self):
        assert compute_available_slots(None, [], 60) == []

    def test_last_slot_must_fit_window(self):
        slots = compute_available_slots((time(9, 0), time(11, 30)), [], 60)
        assert [s.start_time for s in slots] == [time(9, 0), time(10, 0)]

    def test_booked_interval_removed(self):
        slots = compute_available_slots(NINE_TO_FIVE, [(time(10, 0), time(11, 0))], 60)
        assert Slot(time(10, 0), time(11, 0)) not in slots
        assert Slot(time(9, 0), time(10, 0)) in slots
        assert Slot(time(11, 0), time(12, 0)) in slots

    def test_partial_overlap_removes_both_neighbours(self):
        slots = compute_available_slots(NINE_TO_FIVE, [(time(10, 30), time(11, 30))], 60)
        starts = [s.start_time for s in slots]
        assert time(10, 0) not in starts
        assert time(11, 0) not in starts
        assert time(12, 0) in starts

    def test_never_overlaps_booked(self):
        booked = [(time(9, 30), time(10, 0)), (time(13, 0), time(14, 30)), (time(16, 0), time(17, 0))]
        for minutes in (30, 60, 90, 120):
            for slot in compute_available_slots(NINE_TO_FIVE, booked, minutes):
                assert not any(overlaps(slot, b) for b in booked)

    def test_not_before_drops_earlier_starts(self):
        slots = compute_available_slots(NINE_TO_FIVE, [], 60, not_before=time(12, 1))
        assert slots[0].start_time == time(13, 0)

    def test_thirty_minute_step(self):
        slots = compute_available_slots((time(9, 0), time(10, 0)), [], 30)
        assert slots == [Slot(time(9, 0), time(9, 30)), Slot(time(9, 30), time(10, 0))]


def test_touching_intervals_do_not_overlap():
    assert not overlaps((time(9, 0), time(10, 0)), (time(10, 0), time(11, 0)))
    assert overlaps((time(9, 0), time(10, 1)), (time(10, 0), time(11, 0)))


@pytest.mark.parametrize("start,duration,ok", [
    (time(9, 0), 60, True),
    (time(16, 0), 60, True),
    (time(16, 30), 60, False),
    (time(8, 30), 60, False),
])
def test_fits_window(start, duration, ok):
    assert fits_window(NINE_TO_FIVE, start, duration) is ok


def test_fits_window_disabled_day():
    assert fits_window(None, time(9, 0), 60) is False


class TestAvailableSlotsFor:

    async def test_default_week_monday(self, db, therapist):
        monday = next_weekday(0)
        slots = await available_slots_for(db, therapist, monday, 60)
        assert len(slots) == 8

    async def test_weekend_disabled_by_default(self, db, therapist):
        saturday = next_weekday(5)
        assert await available_slots_for(db, therapist, saturday, 60) == []

    async def test_past_date_is_empty(self, db, therapist):
        monday = next_weekday(0)
        later = datetime.combine(monday + timedelta(days=1), time(8, 0))
        assert await available_slots_for(db, therapist, monday, 60, now=later) == []

    async def test_today_excludes_started_slots(self, db, therapist):
        monday = next_weekday(0)
        now = datetime.combine(monday, time(11, 15))
        slots = await available_slots_for(db, therapist, monday, 60, now=now)
        assert slots[0].start_time == time(12, 0)

    async def test_excludes_live_appointments_only(self, db, therapist, patient):
        monday = next_weekday(0)
        for start, status in ((time(10, 0), "pending"), (time(11, 0), "confirmed"), (time(12, 0), "cancelled")):
            db.add(Appointment(
                user=patient, therapist=therapist, date=monday,
                start_time=start, end_time=start.replace(hour=start.hour + 1),
                duration=60, status=status, amount=100,
            ))
        await db.commit()

        starts = [s.start_time for s in await available_slots_for(db, therapist, monday, 60)]
        assert time(10, 0) not in starts
        assert time(11, 0) not in starts
        assert time(12, 0) in starts
