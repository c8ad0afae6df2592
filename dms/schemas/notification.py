"""Notification schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    institution_id: UUID
    litige_id: UUID | None
    message: str
    is_read: bool
    read_at: datetime | None
    webhook_delivered: bool
    created_at: datetime
