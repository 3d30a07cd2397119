from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.db.session import get_db
from dinelink.core.dependencies import get_current_user
from dinelink.schemas.notification import NotificationOut, UnreadCount
from dinelink.services.notification_services import (
    get_unread_count,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter()

@router.get("/", response_model=list[NotificationOut])
async def my_notifications(
    limit: int = 20,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await get_user_notifications(db, current_user.id, limit=limit)

@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return {"unread": await get_unread_count(db, current_user.id)}

@router.post("/read-all")
async def read_all(db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return {"marked": await mark_all_as_read(db, current_user.id)}

@router.post("/{notification_id}/read", response_model=NotificationOut)
async def read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await mark_as_read(db, notification_id, current_user.id)
