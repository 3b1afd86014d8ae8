import math
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.db import get_db
from mindcare.logging import get_logger
from mindcare.models import User, TherapistProfile
from mindcare.schemas import (
    AccountList, AccountPublic, TherapistList, TherapistSummary, AdminAccountUpdate, AdminTherapistUpdate,
    AdminPasswordChange, AdminAnalytics, ChatbotAnalytics, Period,
)
from mindcare.services import accounts, analytics
from mindcare.services.auth_service import get_current_admin, hash_password, verify_password
from mindcare.services.notifications import notify

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)

PROFILE_FIELDS = {"license_number", "specializations", "languages", "experience", "bio", "hourly_rate", "is_verified"}


async def _account(db: AsyncSession, account_id: int, role: str) -> User:
    user = await db.get(User, account_id)
    if user is None or user.role != role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{role.capitalize()} not found")
    return user


def _filtered(q, search: Optional[str], status_filter: Optional[str]):
    if search:
        like = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(User.first_name).like(like),
            func.lower(User.last_name).like(like),
            func.lower(User.email).like(like),
        ))
    if status_filter == "active":
        q = q.where(User.is_active.is_(True))
    elif status_filter == "inactive":
        q = q.where(User.is_active.is_(False))
    return q


async def _page(db: AsyncSession, q, page: int, limit: int):
    total = (await db.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
    res = await db.execute(q.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit))
    return res.scalars().all(), total, (math.ceil(total / limit) if total else 0)


@router.get("/users", response_model=AccountList)
async def list_users(
    search: Optional[str] = None,
    status_filter: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    q = _filtered(select(User).where(User.role == "user"), search, status_filter)
    users, total, pages = await _page(db, q, page, limit)
    return {"users": [accounts.account_dict(u) for u in users], "total": total, "page": page, "total_pages": pages}


@router.get("/therapists", response_model=TherapistList)
async def list_therapists(
    search: Optional[str] = None,
    status_filter: Optional[Literal["active", "inactive", "verified", "pending"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    q = select(User).join(TherapistProfile, TherapistProfile.therapist_id == User.id).where(User.role == "therapist")
    if status_filter == "verified":
        q = q.where(TherapistProfile.is_verified.is_(True))
    elif status_filter == "pending":
        q = q.where(TherapistProfile.is_verified.is_(False))
    q = _filtered(q, search, status_filter)
    therapists, total, pages = await _page(db, q, page, limit)
    return {
        "therapists": [accounts.therapist_dict(t) for t in therapists],
        "total": total,
        "page": page,
        "total_pages": pages,
    }


@router.put("/therapists/{therapist_id}/verify", response_model=TherapistSummary)
async def verify_therapist(
    therapist_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    therapist = await _account(db, therapist_id, "therapist")
    therapist.therapist_profile.is_verified = True
    await notify(
        db, therapist.id, "account_verified",
        "Your therapist profile has been verified. Clients can now book sessions with you.",
    )
    await db.commit()
    logger.info("therapist_verified", therapist_id=therapist.id, admin_id=current_user.id)
    return accounts.therapist_dict(therapist)


@router.put("/users/{account_id}/toggle-status", response_model=AccountPublic)
async def toggle_status(
    account_id: int,
    user_type: Literal["user", "therapist"] = "user",
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    user = await _account(db, account_id, user_type)
    user.is_active = not user.is_active
    await db.commit()
    logger.info("account_status_toggled", account_id=user.id, is_active=user.is_active, admin_id=current_user.id)
    return accounts.account_dict(user)


async def _apply_update(db: AsyncSession, user: User, update_data: dict):
    email = update_data.get("email")
    if email and await accounts.email_exists(db, email, exclude_id=user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    if email:
        update_data["email"] = email.lower()
    for field, value in update_data.items():
        target = user.therapist_profile if field in PROFILE_FIELDS else user
        setattr(target, field, value)
    await db.commit()


@router.put("/users/{user_id}", response_model=AccountPublic)
async def update_user(
    user_id: int,
    req: AdminAccountUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    user = await _account(db, user_id, "user")
    await _apply_update(db, user, req.model_dump(exclude_unset=True))
    return accounts.account_dict(user)


@router.put("/therapists/{therapist_id}", response_model=TherapistSummary)
async def update_therapist(
    therapist_id: int,
    req: AdminTherapistUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    therapist = await _account(db, therapist_id, "therapist")
    await _apply_update(db, therapist, req.model_dump(exclude_unset=True))
    return accounts.therapist_dict(therapist)


async def _delete(db: AsyncSession, account_id: int, role: str, admin: User):
    user = await _account(db, account_id, role)
    await db.delete(user)
    await db.commit()
    logger.info("account_deleted", account_id=account_id, role=role, admin_id=admin.id)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await _delete(db, user_id, "user", current_user)


@router.delete("/therapists/{therapist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_therapist(
    therapist_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await _delete(db, therapist_id, "therapist", current_user)


@router.get("/analytics", response_model=AdminAnalytics)
async def admin_analytics(
    period: Period = "month",
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await analytics.admin_analytics(db, period, date.today())


@router.get("/chatbot-analytics", response_model=ChatbotAnalytics)
async def chatbot_analytics(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await analytics.chatbot_analytics(db, days)


@router.put("/change-password")
async def change_password(
    req: AdminPasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    if not verify_password(req.current_password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    current_user.password_hash = hash_password(req.new_password)
    await db.commit()
    logger.info("password_changed", user_id=current_user.id)
    return {"message": "Password updated successfully"}
