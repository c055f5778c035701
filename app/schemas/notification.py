"""Notification schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.notification import NotificationType


class NotificationResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    order_id: uuid.UUID | None = None
    ticket_id: uuid.UUID | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class ReadAllResponse(BaseModel):
    updated: int
