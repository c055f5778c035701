"""Support ticket schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.ticket import TicketCategory, TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    subject: str = Field(min_length=3, max_length=200)
    body: str = Field(min_length=10, max_length=10000)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: TicketCategory = TicketCategory.OTHER


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class TicketAssign(BaseModel):
    assigned_to: uuid.UUID | None = None


class TicketMessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=10000)
    is_internal: bool = False


class TicketMessageResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    ticket_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    is_admin: bool
    is_internal: bool
    created_at: datetime


class TicketResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    user_id: uuid.UUID
    subject: str
    body: str
    status: TicketStatus
    priority: TicketPriority
    category: TicketCategory
    assigned_to: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class TicketDetailResponse(BaseModel):
    ticket: TicketResponse
    messages: list[TicketMessageResponse]


class TicketStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
