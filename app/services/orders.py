"""Order placement and the order status workflow."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import or_, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import ChatRoom
from app.models.notification import NotificationType
from app.models.order import Order, OrderStatus
from app.models.product import Product
from app.models.user import User
from app.schemas.order import OrderCreate, OrderResponse
from app.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.services.notifications import NotificationService
from app.services.realtime import ConnectionManager, EventType

logger = logging.getLogger(__name__)

BUYER = "buyer"
SELLER = "seller"

# (from, to) -> order sides allowed to make the move; admins may make any of them
ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[str]] = {
    (OrderStatus.PENDING, OrderStatus.APPROVED): frozenset({SELLER}),
    (OrderStatus.PENDING, OrderStatus.REJECTED): frozenset({SELLER}),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): frozenset({BUYER}),
    (OrderStatus.APPROVED, OrderStatus.SHIPPED): frozenset({SELLER}),
    (OrderStatus.APPROVED, OrderStatus.CANCELLED): frozenset({BUYER}),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): frozenset({SELLER, BUYER}),
}

# Statuses that give the reserved stock back to the product
STOCK_RELEASING = frozenset({OrderStatus.REJECTED, OrderStatus.CANCELLED})

# Statuses after which the order's chat room is closed
ROOM_CLOSING = frozenset({OrderStatus.REJECTED, OrderStatus.CANCELLED, OrderStatus.DELIVERED})

STATUS_NOTIFICATIONS: dict[OrderStatus, tuple[NotificationType, str, str]] = {
    OrderStatus.APPROVED: (
        NotificationType.ORDER_APPROVED,
        "Order approved",
        "Your order for {product} was approved and is being prepared.",
    ),
    OrderStatus.REJECTED: (
        NotificationType.ORDER_REJECTED,
        "Order rejected",
        "Your order for {product} was rejected.",
    ),
    OrderStatus.SHIPPED: (
        NotificationType.ORDER_SHIPPED,
        "Order shipped",
        "Your order for {product} has been shipped.",
    ),
    OrderStatus.DELIVERED: (
        NotificationType.ORDER_DELIVERED,
        "Order delivered",
        "The order for {product} was delivered.",
    ),
    OrderStatus.CANCELLED: (
        NotificationType.ORDER_CANCELLED,
        "Order cancelled",
        "The order for {product} was cancelled.",
    ),
}


def order_side(order: Order, user: User) -> str | None:
    """Return ``"buyer"``/``"seller"`` for a participant, None otherwise."""
    if user.id == order.buyer_id:
        return BUYER
    if user.id == order.seller_id:
        return SELLER
    return None


class OrderService:
    """Storage adapter for orders; also opens the order's chat room."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService,
        manager: ConnectionManager,
    ) -> None:
        self._db = db
        self._notifications = notifications
        self._manager = manager

    async def _lock_product(self, product_id: uuid.UUID) -> Product | None:
        """Load a product with its row locked until the transaction ends.

        Fresh values replace whatever the session already holds, so the
        stock check runs against the committed row.
        """
        result = await self._db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def place_order(self, buyer: User, data: OrderCreate) -> Order:
        product = await self._lock_product(data.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found")
        if product.seller_id == buyer.id:
            raise ValidationFailedError("You cannot order your own product")
        if data.quantity < product.min_order_quantity:
            raise ValidationFailedError(
                f"Minimum order quantity for this product is {product.min_order_quantity}"
            )
        if data.quantity > product.stock:
            raise ValidationFailedError(f"Insufficient stock: {product.stock} available")

        product.stock -= data.quantity
        unit_price = Decimal(product.price)
        order = Order(
            product_id=product.id,
            buyer_id=buyer.id,
            seller_id=product.seller_id,
            quantity=data.quantity,
            unit_price=unit_price,
            total_price=unit_price * data.quantity,
            notes=data.notes,
        )
        self._db.add(order)
        await self._db.flush()

        room = ChatRoom(order_id=order.id, buyer_id=buyer.id, seller_id=product.seller_id)
        self._db.add(room)
        await self._db.flush()

        logger.info(
            f"Order placed: {order.id} product={product.id} qty={data.quantity} buyer={buyer.id}"
        )

        await self._notifications.notify(
            product.seller_id,
            NotificationType.ORDER_PLACED,
            "New order",
            f"{buyer.full_name} ordered {data.quantity} x {product.name}.",
            order_id=order.id,
        )
        return order

    async def get_order(self, order_id: uuid.UUID, user: User) -> Order:
        order = await self._db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if not user.is_admin and order_side(order, user) is None:
            raise PermissionDeniedError("Access denied")
        return order

    async def list_orders(
        self,
        user: User,
        status: OrderStatus | None = None,
        side: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        query = select(Order)
        if side == BUYER:
            query = query.where(Order.buyer_id == user.id)
        elif side == SELLER:
            query = query.where(Order.seller_id == user.id)
        elif not user.is_admin:
            query = query.where(or_(Order.buyer_id == user.id, Order.seller_id == user.id))
        if status:
            query = query.where(Order.status == status)

        total = await self._db.scalar(select(func.count()).select_from(query.subquery())) or 0
        query = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all()), total

    async def change_status(
        self,
        order_id: uuid.UUID,
        actor: User,
        new_status: OrderStatus,
        reason: str | None = None,
    ) -> Order:
        """Apply one transition of the order workflow.

        Raises:
            NotFoundError: Unknown order
            PermissionDeniedError: Actor is not a participant, or is on the wrong side
            ValidationFailedError: The transition does not exist
        """
        order = await self.get_order(order_id, actor)
        old_status = order.status

        allowed_sides = ORDER_TRANSITIONS.get((old_status, new_status))
        if allowed_sides is None:
            raise ValidationFailedError(
                f"Cannot change order status from {old_status.value} to {new_status.value}"
            )
        side = order_side(order, actor)
        if not actor.is_admin and side not in allowed_sides:
            raise PermissionDeniedError(
                f"Only the {' or '.join(sorted(allowed_sides))} can set status {new_status.value}"
            )

        product = await self._lock_product(order.product_id)
        if new_status in STOCK_RELEASING and product is not None:
            product.stock += order.quantity

        order.status = new_status
        if new_status in ROOM_CLOSING:
            room = await self._db.scalar(select(ChatRoom).where(ChatRoom.order_id == order.id))
            if room is not None:
                room.is_active = False
        await self._db.flush()

        logger.info(
            f"Order {order.id} status {old_status.value} -> {new_status.value} by {actor.id}"
        )

        type_, title, template = STATUS_NOTIFICATIONS[new_status]
        message = template.format(product=product.name if product else "your product")
        if reason:
            message = f"{message} Reason: {reason}"

        if side == BUYER:
            recipients = [order.seller_id]
        elif side == SELLER:
            recipients = [order.buyer_id]
        else:
            recipients = [order.buyer_id, order.seller_id]
        for recipient in recipients:
            await self._notifications.notify(
                recipient,
                type_,
                title,
                message,
                order_id=order.id,
                data={"from": old_status.value, "to": new_status.value},
            )

        await self._manager.send_to_users(
            [order.buyer_id, order.seller_id],
            EventType.ORDER_STATUS_UPDATED,
            OrderResponse.model_validate(order).model_dump(mode="json"),
        )
        return order
