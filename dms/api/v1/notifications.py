"""Notification inbox endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query

from dms.api.deps import CurrentUser, DbSession
from dms.models.notification import Notification
from dms.schemas.notification import NotificationResponse
from dms.services.notification_service import notification_service

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def get_notifications(
    current_user: CurrentUser,
    db: DbSession,
    unread_only: bool = Query(default=True),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[Notification]:
    """Notifications addressed to the caller's institution."""
    if current_user.institution_id is None:
        return []
    return await notification_service.list_for_institution(
        db, current_user.institution_id, unread_only=unread_only, limit=limit
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> Notification:
    return await notification_service.mark_read(db, notification_id, current_user)
