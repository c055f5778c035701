"""Order and chat schemas."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.chat import ChatMessageType
from app.models.order import OrderStatus


class OrderCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    reason: str | None = Field(default=None, max_length=500)


class OrderResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    product_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: OrderStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime


class ChatRoomResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    order_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    is_active: bool
    last_message_at: datetime | None
    created_at: datetime
    unread_count: int = 0


class ChatMessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    type: ChatMessageType = ChatMessageType.TEXT


class ChatMessageResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    chat_room_id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    type: ChatMessageType
    content: str
    is_read: bool
    created_at: datetime
