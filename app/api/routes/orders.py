"""Order endpoints."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query

from app.api.deps import CurrentUser, Orders
from app.models.order import OrderStatus
from app.schemas.common import Page
from app.schemas.order import OrderCreate, OrderResponse, OrderStatusUpdate

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=201)
async def place_order(payload: OrderCreate, user: CurrentUser, orders: Orders) -> OrderResponse:
    """Place an order; reserves stock and opens the order chat room."""
    return OrderResponse.model_validate(await orders.place_order(user, payload))


@router.get("", response_model=Page[OrderResponse])
async def list_orders(
    user: CurrentUser,
    orders: Orders,
    status: OrderStatus | None = Query(default=None),
    role: Literal["buyer", "seller"] | None = Query(default=None, description="Side of the order"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> Page[OrderResponse]:
    items, total = await orders.list_orders(user, status=status, side=role, page=page, limit=limit)
    return Page[OrderResponse](
        items=[OrderResponse.model_validate(o) for o in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, user: CurrentUser, orders: Orders) -> OrderResponse:
    return OrderResponse.model_validate(await orders.get_order(order_id, user))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    user: CurrentUser,
    orders: Orders,
) -> OrderResponse:
    order = await orders.change_status(order_id, user, payload.status, payload.reason)
    return OrderResponse.model_validate(order)
