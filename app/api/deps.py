"""API dependencies for dependency injection."""

import logging
from typing import Annotated

import redis.asyncio as redis
from fastapi import BackgroundTasks, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection

from app.core.security import TokenError, decode_access_token
from app.db.session import get_db, get_session_maker
from app.models.user import User, UserRole
from app.services.cart import CartService, FavoriteService
from app.services.catalog import ProductService
from app.services.chat import ChatService
from app.services.mailer import EmailClient, get_email_client
from app.services.notifications import NotificationService
from app.services.orders import OrderService
from app.services.realtime import ConnectionManager, get_connection_manager
from app.services.sessions import SessionStore
from app.services.tickets import TicketService
from app.services.users import UserService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_redis(connection: HTTPConnection) -> redis.Redis:
    """Get Redis client from app state."""
    return connection.app.state.redis


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def resolve_token(token: str, db: AsyncSession, redis_client: redis.Redis) -> tuple[User, str]:
    """Turn a bearer token into ``(user, session_token)``.

    Shared by the HTTP dependency and the WebSocket handshake.

    Raises:
        HTTPException: 401 for bad tokens, revoked sessions and inactive users
    """
    try:
        user_id, session_token = decode_access_token(token)
    except TokenError as e:
        logger.warning(f"Rejected access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    session_user_id = await SessionStore(redis_client).get_user_id(session_token)
    if session_user_id is None or session_user_id != user_id:
        logger.warning(f"Access token for user {user_id} has no live session")
        raise HTTPException(status_code=401, detail="Session expired")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning(f"Access token for missing or inactive user {user_id}")
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return user, session_token


async def get_session_auth(
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_client: Annotated[redis.Redis, Depends(get_redis)],
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> tuple[User, str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Missing access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await resolve_token(credentials.credentials, db, redis_client)


async def get_current_user(
    auth: Annotated[tuple[User, str], Depends(get_session_auth)],
) -> User:
    return auth[0]


async def get_session_token(
    auth: Annotated[tuple[User, str], Depends(get_session_auth)],
) -> str:
    return auth[1]


async def require_admin(user: Annotated[User, Depends(get_current_user)]) -> User:
    if user.role != UserRole.ADMIN:
        logger.warning(f"Admin endpoint requested by non-admin {user.id}")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_seller(user: Annotated[User, Depends(get_current_user)]) -> User:
    if user.role not in (UserRole.SELLER, UserRole.ADMIN):
        raise HTTPException(status_code=403, detail="Seller access required")
    return user


# =============================================================================
# Service Dependencies
# =============================================================================


def get_manager() -> ConnectionManager:
    return get_connection_manager()


def get_mailer() -> EmailClient:
    return get_email_client()


def get_notification_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    manager: Annotated[ConnectionManager, Depends(get_manager)],
    mailer: Annotated[EmailClient, Depends(get_mailer)],
    background_tasks: BackgroundTasks,
) -> NotificationService:
    return NotificationService(db, manager, mailer, background_tasks)


def get_user_service(db: Annotated[AsyncSession, Depends(get_db)]) -> UserService:
    return UserService(db)


def get_product_service(db: Annotated[AsyncSession, Depends(get_db)]) -> ProductService:
    return ProductService(db)


def get_cart_service(db: Annotated[AsyncSession, Depends(get_db)]) -> CartService:
    return CartService(db)


def get_favorite_service(db: Annotated[AsyncSession, Depends(get_db)]) -> FavoriteService:
    return FavoriteService(db)


def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    manager: Annotated[ConnectionManager, Depends(get_manager)],
) -> OrderService:
    return OrderService(db, notifications, manager)


def get_chat_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    manager: Annotated[ConnectionManager, Depends(get_manager)],
) -> ChatService:
    return ChatService(db, notifications, manager)


def get_ticket_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    manager: Annotated[ConnectionManager, Depends(get_manager)],
) -> TicketService:
    return TicketService(db, notifications, manager)


# =============================================================================
# Type Aliases
# =============================================================================

DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_maker)]
RedisClient = Annotated[redis.Redis, Depends(get_redis)]
CurrentUser = Annotated[User, Depends(get_current_user)]
SessionToken = Annotated[str, Depends(get_session_token)]
AdminUser = Annotated[User, Depends(require_admin)]
SellerUser = Annotated[User, Depends(require_seller)]
Manager = Annotated[ConnectionManager, Depends(get_manager)]
Users = Annotated[UserService, Depends(get_user_service)]
Products = Annotated[ProductService, Depends(get_product_service)]
Cart = Annotated[CartService, Depends(get_cart_service)]
Favorites = Annotated[FavoriteService, Depends(get_favorite_service)]
Orders = Annotated[OrderService, Depends(get_order_service)]
Chats = Annotated[ChatService, Depends(get_chat_service)]
Tickets = Annotated[TicketService, Depends(get_ticket_service)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]
