"""Shared response envelopes."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Paginated list response."""

    items: list[T]
    total: int
    page: int
    limit: int


class MessageResponse(BaseModel):
    message: str


class CountResponse(BaseModel):
    count: int


def reject_explicit_nulls(model: BaseModel, fields: tuple[str, ...]) -> None:
    """Partial updates may omit ``fields`` but not set them to null."""
    nulled = [f for f in fields if f in model.model_fields_set and getattr(model, f) is None]
    if nulled:
        raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
