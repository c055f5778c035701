"""Admin dashboard counters."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AdminUser, DbSession, Manager
from app.models.order import Order, OrderStatus
from app.models.product import Product
from app.models.ticket import Ticket, TicketStatus
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["Admin"])


class UserCounts(BaseModel):
    total: int
    by_role: dict[str, int]


class ProductCounts(BaseModel):
    total: int
    active: int


class StatusCounts(BaseModel):
    total: int
    by_status: dict[str, int]


class AdminStatsResponse(BaseModel):
    users: UserCounts
    products: ProductCounts
    orders: StatusCounts
    tickets: StatusCounts
    online_users: int
    open_sockets: int


async def _count_by(db: AsyncSession, column, keys) -> dict[str, int]:
    """Row counts grouped by an enum column, with zeros for absent values."""
    counts = {key.value: 0 for key in keys}
    rows = await db.execute(select(column, func.count()).group_by(column))
    for value, count in rows.all():
        counts[value.value] = count
    return counts


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(db: DbSession, manager: Manager, _admin: AdminUser) -> AdminStatsResponse:
    """Platform-wide counters for the admin dashboard."""
    users_by_role = await _count_by(db, User.role, UserRole)
    orders_by_status = await _count_by(db, Order.status, OrderStatus)
    tickets_by_status = await _count_by(db, Ticket.status, TicketStatus)

    products_total = await db.scalar(select(func.count(Product.id))) or 0
    products_active = await db.scalar(
        select(func.count(Product.id)).where(Product.is_active.is_(True))
    ) or 0

    return AdminStatsResponse(
        users=UserCounts(total=sum(users_by_role.values()), by_role=users_by_role),
        products=ProductCounts(total=products_total, active=products_active),
        orders=StatusCounts(total=sum(orders_by_status.values()), by_status=orders_by_status),
        tickets=StatusCounts(total=sum(tickets_by_status.values()), by_status=tickets_by_status),
        online_users=manager.online_user_count,
        open_sockets=manager.socket_count,
    )
