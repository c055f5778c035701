"""SQLAlchemy models."""

from app.models.user import User, UserRole
from app.models.product import Product, Review
from app.models.order import Order, OrderStatus
from app.models.chat import ChatRoom, ChatMessage, ChatMessageType
from app.models.ticket import (
    Ticket,
    TicketMessage,
    TicketStatus,
    TicketPriority,
    TicketCategory,
)
from app.models.notification import Notification, NotificationType
from app.models.cart import CartItem, Favorite

__all__ = [
    "User",
    "UserRole",
    "Product",
    "Review",
    "Order",
    "OrderStatus",
    "ChatRoom",
    "ChatMessage",
    "ChatMessageType",
    "Ticket",
    "TicketMessage",
    "TicketStatus",
    "TicketPriority",
    "TicketCategory",
    "Notification",
    "NotificationType",
    "CartItem",
    "Favorite",
]
