from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.models import Notification


async def notify(db: AsyncSession, user_id: int, type_: str, message: str) -> Notification:
    """Queue a notification in the caller's transaction (no commit)."""
    n = Notification(user_id=user_id, type=type_, message=message)
    db.add(n)
    return n


async def list_for(db: AsyncSession, user_id: int, unread_only: bool = False, limit: int = 50):
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    q = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


async def mark_read(db: AsyncSession, user_id: int, notification_id: int):
    res = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    n = res.scalar_one_or_none()
    if n is None:
        return None
    n.read = True
    await db.commit()
    return n


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return res.rowcount or 0
