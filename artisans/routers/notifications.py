"""Notifications router — fetch, read, and mark-all-read."""

from fastapi import APIRouter, Depends
from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.errors import NotFound
from artisans.models.notification import Notification
from artisans.routers.auth import get_context
from artisans.schemas.notification import NotificationList, NotificationOut

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def get_notifications(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    """Return last 20 notifications + unread count for the current user."""
    user_id = ctx.user_id

    # Unread count
    count_result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read == False,
        )
    )
    unread_count = count_result.scalar() or 0

    # Last 20 notifications
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .limit(20)
    )
    return NotificationList(
        unread_count=unread_count,
        notifications=[NotificationOut.model_validate(n) for n in result.scalars().all()],
    )


@router.post("/read/{notif_id}", response_model=NotificationOut)
async def mark_read(
    notif_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notif_id,
            Notification.user_id == ctx.user_id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise NotFound("Notification not found")

    notif.is_read = True
    await db.flush()
    return notif


@router.post("/read-all")
async def mark_all_read(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    """Mark all notifications as read for the current user."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == ctx.user_id,
            Notification.is_read == False,
        )
        .values(is_read=True)
    )
    return {"ok": True, "updated": result.rowcount}
