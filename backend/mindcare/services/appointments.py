"""
Appointment lifecycle.

pending -> confirmed | cancelled
confirmed -> completed | cancelled
completed, cancelled are terminal (a completed one can still be reviewed).
"""
from __future__ import annotations
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.logging import get_logger
from mindcare.models import Appointment, User
from mindcare.services.notifications import notify

logger = get_logger(__name__)

TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


class InvalidTransition(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change appointment status from {current} to {target}")
        self.current = current
        self.target = target


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def _when(appt: Appointment) -> str:
    return f"{appt.date.isoformat()} {appt.start_time.strftime('%H:%M')}"


async def change_status(
    db: AsyncSession,
    appt: Appointment,
    target: str,
    actor: User,
    reason: Optional[str] = None,
) -> Appointment:
    """
    Apply a transition on behalf of `actor` (one of the two parties) and
    notify the other party. Commits.
    """
    check_transition(appt.status, target)
    previous = appt.status
    appt.status = target

    if target == "cancelled":
        appt.cancellation_reason = reason
        appt.cancelled_by = actor.role

    other_id = appt.user_id if actor.id == appt.therapist_id else appt.therapist_id
    messages = {
        "confirmed": f"Your appointment on {_when(appt)} has been confirmed.",
        "completed": f"Your appointment on {_when(appt)} is complete. You can now leave a review.",
        "cancelled": f"Your appointment on {_when(appt)} was cancelled by the {actor.role}.",
    }
    await notify(db, other_id, f"appointment_{target}", messages[target])
    await db.commit()

    logger.info(
        "appointment_status_changed",
        appointment_id=appt.id,
        from_status=previous,
        to_status=target,
        actor_role=actor.role,
    )
    return appt
