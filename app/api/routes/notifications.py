"""In-app notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query

from app.api.deps import CurrentUser, Notifications
from app.schemas.common import CountResponse
from app.schemas.notification import NotificationResponse, ReadAllResponse

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    user: CurrentUser,
    notifications: Notifications,
    unread_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[NotificationResponse]:
    items = await notifications.list_for_user(user.id, unread_only=unread_only, limit=limit, offset=offset)
    return [NotificationResponse.model_validate(n) for n in items]


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(user: CurrentUser, notifications: Notifications) -> CountResponse:
    return CountResponse(count=await notifications.unread_count(user.id))


@router.put("/read-all", response_model=ReadAllResponse)
async def mark_all_read(user: CurrentUser, notifications: Notifications) -> ReadAllResponse:
    return ReadAllResponse(updated=await notifications.mark_all_read(user.id))


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: CurrentUser,
    notifications: Notifications,
) -> NotificationResponse:
    return NotificationResponse.model_validate(await notifications.mark_read(notification_id, user.id))
