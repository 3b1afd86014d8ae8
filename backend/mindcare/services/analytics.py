"""
Dashboard aggregates.

Status / session-type / intent counts are GROUP BY queries. Time series are
bucketed in python from the raw (date, value) rows so the same code runs on
postgres and sqlite.
"""
from __future__ import annotations
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, NamedTuple, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.models import Appointment, ChatMessage, TherapistProfile, User
from mindcare.services import chatbot

PERIOD_DAYS = {"week": 7, "month": 30}


class Bucket(NamedTuple):
    label: str
    start: date
    end: date  # exclusive


def _month_start(d: date, back: int = 0) -> date:
    y, m = d.year, d.month - back
    while m <= 0:
        m += 12
        y -= 1
    return date(y, m, 1)


def _next_month(d: date) -> date:
    return date(d.year + (d.month == 12), d.month % 12 + 1, 1)


def monthly_buckets(today: date, months: int) -> list[Bucket]:
    out = []
    for back in range(months - 1, -1, -1):
        start = _month_start(today, back)
        out.append(Bucket(start.strftime("%b %Y"), start, _next_month(start)))
    return out


def period_buckets(period: str, today: date) -> list[Bucket]:
    """week: 7 daily, month: 30 daily, year: 12 monthly; all ending today."""
    if period == "year":
        return monthly_buckets(today, 12)
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period: {period}")
    days = PERIOD_DAYS[period]
    return [
        Bucket(d.isoformat(), d, d + timedelta(days=1))
        for d in (today - timedelta(days=n) for n in range(days - 1, -1, -1))
    ]


def bucketize(buckets: list[Bucket], rows: Iterable[tuple[date, float]]) -> list[float]:
    totals = [0.0] * len(buckets)
    for d, value in rows:
        if isinstance(d, datetime):
            d = d.date()
        for i, b in enumerate(buckets):
            if b.start <= d < b.end:
                totals[i] += float(value or 0)
                break
    return totals


def _as_ints(values: list[float]) -> list[int]:
    return [int(v) for v in values]


async def _count(db: AsyncSession, q) -> int:
    res = await db.execute(q)
    return int(res.scalar() or 0)


async def _grouped(db: AsyncSession, column, *where) -> dict[str, int]:
    res = await db.execute(select(column, func.count()).where(*where).group_by(column))
    return {k: int(v) for k, v in res.all()}


def _series(counts: dict[str, int], labels: Iterable[str]) -> dict:
    labels = list(labels)
    return {"labels": labels, "data": [counts.get(k, 0) for k in labels]}


async def therapist_dashboard(db: AsyncSession, therapist_id: int) -> dict:
    by_status = await _grouped(db, Appointment.status, Appointment.therapist_id == therapist_id)
    earnings = await db.execute(
        select(func.coalesce(func.sum(Appointment.amount), 0)).where(
            Appointment.therapist_id == therapist_id, Appointment.status == "completed"
        )
    )
    profile = await db.get(TherapistProfile, therapist_id)
    return {
        "total_appointments": sum(by_status.values()),
        "pending_appointments": by_status.get("pending", 0),
        "confirmed_appointments": by_status.get("confirmed", 0),
        "completed_appointments": by_status.get("completed", 0),
        "total_earnings": round(float(earnings.scalar() or 0), 2),
        "average_rating": profile.rating if profile else 0.0,
        "total_reviews": profile.total_reviews if profile else 0,
    }


async def therapist_analytics(db: AsyncSession, therapist_id: int, period: str, today: date) -> dict:
    buckets = period_buckets(period, today)
    since = buckets[0].start

    res = await db.execute(
        select(Appointment.date, Appointment.status, Appointment.amount, Appointment.user_id).where(
            Appointment.therapist_id == therapist_id
        )
    )
    rows = res.all()
    in_period = [r for r in rows if r.date >= since]
    completed = [r for r in in_period if r.status == "completed"]

    earnings = bucketize(buckets, ((r.date, r.amount) for r in completed))
    appts = bucketize(buckets, ((r.date, 1) for r in in_period))

    # clients: first appointment date decides "new"
    first_seen: dict[int, date] = {}
    per_client: Counter = Counter()
    for r in rows:
        per_client[r.user_id] += 1
        if r.user_id not in first_seen or r.date < first_seen[r.user_id]:
            first_seen[r.user_id] = r.date
    profile = await db.get(TherapistProfile, therapist_id)

    session_types = await _grouped(
        db, Appointment.session_type,
        Appointment.therapist_id == therapist_id, Appointment.date >= since,
    )

    months = monthly_buckets(today, 6)
    trend_rows = [r for r in rows if r.date >= months[0].start]

    return {
        "period": period,
        "earnings": {"labels": [b.label for b in buckets], "data": [round(v, 2) for v in earnings]},
        "appointments": {"labels": [b.label for b in buckets], "data": appts},
        "client_stats": {
            "total_clients": len(per_client),
            "new_clients": sum(1 for d in first_seen.values() if d >= since),
            "returning_clients": sum(1 for n in per_client.values() if n > 1),
            "average_rating": profile.rating if profile else 0.0,
        },
        "session_types": _series(session_types, ("individual", "couple", "group")),
        "monthly_trends": {
            "labels": [m.label for m in months],
            "appointments": _as_ints(bucketize(months, ((r.date, 1) for r in trend_rows))),
            "earnings": [
                round(v, 2)
                for v in bucketize(months, ((r.date, r.amount) for r in trend_rows if r.status == "completed"))
            ],
        },
    }


async def admin_analytics(db: AsyncSession, period: str, today: date) -> dict:
    buckets = period_buckets(period, today)
    since = buckets[0].start
    labels = [b.label for b in buckets]

    roles = await _grouped(db, User.role)
    by_status = await _grouped(db, Appointment.status)
    revenue = await db.execute(
        select(func.coalesce(func.sum(Appointment.amount), 0)).where(Appointment.status == "completed")
    )
    chat_total = await _count(db, select(func.count(ChatMessage.id)))

    res = await db.execute(select(User.created_at, User.role).where(User.role != "admin"))
    signups = res.all()
    res = await db.execute(
        select(Appointment.date, Appointment.status, Appointment.amount).where(Appointment.date >= since)
    )
    appt_rows = res.all()

    res = await db.execute(
        select(TherapistProfile.is_verified, User.is_active).join(User, User.id == TherapistProfile.therapist_id)
    )
    therapists = res.all()

    return {
        "period": period,
        "platform_stats": {
            "total_users": roles.get("user", 0),
            "total_therapists": roles.get("therapist", 0),
            "total_appointments": sum(by_status.values()),
            "completed_appointments": by_status.get("completed", 0),
            "total_revenue": round(float(revenue.scalar() or 0), 2),
            "chatbot_messages": chat_total,
        },
        "user_growth": {
            "labels": labels,
            "users": _as_ints(bucketize(buckets, ((c, 1) for c, r in signups if r == "user"))),
            "therapists": _as_ints(bucketize(buckets, ((c, 1) for c, r in signups if r == "therapist"))),
        },
        "revenue_analytics": {
            "labels": labels,
            "revenue": [
                round(v, 2)
                for v in bucketize(buckets, ((r.date, r.amount) for r in appt_rows if r.status == "completed"))
            ],
            "appointments": _as_ints(bucketize(buckets, ((r.date, 1) for r in appt_rows))),
        },
        "therapist_stats": {
            "verified": sum(1 for v, _ in therapists if v),
            "pending": sum(1 for v, _ in therapists if not v),
            "active": sum(1 for _, a in therapists if a),
            "inactive": sum(1 for _, a in therapists if not a),
        },
        "appointment_status": _series(by_status, ("pending", "confirmed", "completed", "cancelled")),
    }


async def chatbot_analytics(db: AsyncSession, days: int, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)

    total = await _count(
        db, select(func.count(ChatMessage.id)).where(ChatMessage.created_at >= since)
    )
    # intent is stored on both turns; count user turns only
    intents = await _grouped(
        db, ChatMessage.intent,
        ChatMessage.created_at >= since, ChatMessage.message_type == "user",
    )

    moods: Counter = Counter()
    for intent, n in intents.items():
        moods[chatbot.mood_for(intent)] += n
    mood_labels = sorted(moods, key=lambda m: (-moods[m], m))

    top = sorted(intents.items(), key=lambda kv: (-kv[1], kv[0] or ""))[:10]
    return {
        "days": days,
        "total_messages": total,
        "escalation_count": intents.get(chatbot.CRISIS, 0),
        "mood_distribution": {"labels": mood_labels, "data": [moods[m] for m in mood_labels]},
        "top_intents": [{"intent": k or chatbot.GENERIC, "count": v} for k, v in top],
    }
