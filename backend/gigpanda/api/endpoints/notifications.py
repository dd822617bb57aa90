from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.notification import MarkReadRequest
from ...services import notifications as notification_service
from ..deps import get_current_user

router = APIRouter()

@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await notification_service.list_notifications(db, user.id, page, limit)
    return {"success": True, **result}

@router.patch("/mark-read")
async def mark_read(
    data: MarkReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    unread = await notification_service.mark_read(db, user.id, data.notification_ids)
    return {"success": True, "message": "Notifications marked as read", "unreadCount": unread}
