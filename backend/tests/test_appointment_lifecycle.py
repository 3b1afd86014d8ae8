from datetime import time

import pytest
from sqlalchemy import select

from mindcare.models import Appointment, Notification
from mindcare.services.appointments import (
    InvalidTransition, TRANSITIONS, can_transition, change_status, check_transition,
)
from conftest import next_weekday

STATUSES = ("pending", "confirmed", "completed", "cancelled")
ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "completed"),
    ("confirmed", "cancelled"),
}


@pytest.mark.parametrize("current", STATUSES)
@pytest.mark.parametrize("target", STATUSES)
def test_transition_table(current, target):
    assert can_transition(current, target) is ((current, target) in ALLOWED)


def test_terminal_states():
    assert TRANSITIONS["completed"] == frozenset()
    assert TRANSITIONS["cancelled"] == frozenset()


def test_check_transition_raises():
    with pytest.raises(InvalidTransition) as exc:
        check_transition("pending", "completed")
    assert exc.value.current == "pending"
    assert exc.value.target == "completed"


async def _appointment(db, patient, therapist, status="pending"):
    appt = Appointment(
        user=patient, therapist=therapist, date=next_weekday(0),
        start_time=time(10, 0), end_time=time(11, 0), duration=60,
        status=status, amount=100,
    )
    db.add(appt)
    await db.commit()
    return appt


async def _notifications(db, user_id):
    res = await db.execute(select(Notification).where(Notification.user_id == user_id))
    return res.scalars().all()


class TestChangeStatus:

    async def test_confirm_notifies_client(self, db, patient, therapist):
        appt = await _appointment(db, patient, therapist)
        await change_status(db, appt, "confirmed", therapist)
        assert appt.status == "confirmed"
        notes = await _notifications(db, patient.id)
        assert [n.type for n in notes] == ["appointment_confirmed"]

    async def test_client_cancel_notifies_therapist(self, db, patient, therapist):
        appt = await _appointment(db, patient, therapist, status="confirmed")
        await change_status(db, appt, "cancelled", patient, reason="feeling unwell")
        assert appt.status == "cancelled"
        assert appt.cancelled_by == "user"
        assert appt.cancellation_reason == "feeling unwell"
        notes = await _notifications(db, therapist.id)
        assert [n.type for n in notes] == ["appointment_cancelled"]

    async def test_completed_cannot_be_cancelled(self, db, patient, therapist):
        appt = await _appointment(db, patient, therapist, status="completed")
        with pytest.raises(InvalidTransition):
            await change_status(db, appt, "cancelled", patient)
        assert appt.status == "completed"
        assert await _notifications(db, therapist.id) == []

    async def test_pending_cannot_jump_to_completed(self, db, patient, therapist):
        appt = await _appointment(db, patient, therapist)
        with pytest.raises(InvalidTransition):
            await change_status(db, appt, "completed", therapist)
