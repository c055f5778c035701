"""Product and review schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from app.schemas.common import reject_explicit_nulls


class ProductSort(str, Enum):
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: str = Field(default="diger", min_length=1, max_length=50)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    min_order_quantity: int = Field(default=1, ge=1)
    image_url: str | None = Field(default=None, max_length=500)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=50)
    price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    min_order_quantity: int | None = Field(default=None, ge=1)
    image_url: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None

    @model_validator(mode="after")
    def non_nullable_fields(self) -> "ProductUpdate":
        reject_explicit_nulls(
            self, ("name", "category", "price", "stock", "min_order_quantity", "is_active")
        )
        return self


class ProductResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    seller_id: uuid.UUID
    name: str
    description: str | None
    category: str
    price: Decimal
    stock: int
    min_order_quantity: int
    rating: Decimal
    image_url: str | None
    is_active: bool
    created_at: datetime


class ProductDetailResponse(ProductResponse):
    review_count: int = 0


class CategoryCount(BaseModel):
    category: str
    count: int


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, min_length=10, max_length=1000)


class ReviewResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime
