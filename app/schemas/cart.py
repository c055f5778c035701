"""Cart and favorites schemas."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.product import ProductResponse


class CartAdd(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)


class CartQuantityUpdate(BaseModel):
    quantity: int = Field(ge=1)


class CartItemResponse(BaseModel):
    model_config = {"from_attributes": True}

    product_id: uuid.UUID
    quantity: int
    product: ProductResponse
    line_total: Decimal


class CartResponse(BaseModel):
    """Cart lines plus the total of the lines whose product is still for sale."""

    items: list[CartItemResponse]
    total_price: Decimal


class FavoriteAdd(BaseModel):
    product_id: uuid.UUID


class FavoriteResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    product_id: uuid.UUID
    product: ProductResponse
    created_at: datetime
