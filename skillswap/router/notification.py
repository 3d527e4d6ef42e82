from fastapi import APIRouter, Depends, Query

from ..db.mongodb import get_notifications_collection
from ..models.user import User
from ..services import notifications as notification_service
from ..utils.auth import get_current_user
from ..utils.utils import paginate, success

router = APIRouter()


@router.get("")
async def my_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    collection=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    found, total, unread = notification_service.list_user_notifications(
        collection, current_user.id, unread_only, page, limit
    )
    return success(
        notifications=found,
        unread_count=unread,
        pagination=paginate(page, limit, total),
    )


@router.put("/read-all")
async def mark_all_notifications_read(
    collection=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    notification_service.mark_all_read(collection, current_user.id)
    return success("All notifications marked as read")


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    collection=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    notification = notification_service.mark_read(collection, notification_id, current_user.id)
    return success("Notification marked as read", notification=notification)
