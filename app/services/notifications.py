"""Notification creation, delivery and read tracking."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.schemas.notification import NotificationResponse
from app.services.errors import NotFoundError
from app.services.mailer import EmailClient, EmailError
from app.services.realtime import ConnectionManager, EventType

logger = logging.getLogger(__name__)


class NotificationService:
    """Persist notifications and fan them out to WebSocket and e-mail."""

    def __init__(
        self,
        db: AsyncSession,
        manager: ConnectionManager | None = None,
        email_client: EmailClient | None = None,
        background: BackgroundTasks | None = None,
    ) -> None:
        self._db = db
        self._manager = manager
        self._email = email_client
        self._background = background

    async def notify(
        self,
        user: User | uuid.UUID,
        type_: NotificationType,
        title: str,
        message: str,
        *,
        order_id: uuid.UUID | None = None,
        ticket_id: uuid.UUID | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Create a notification for one user and push it if they are online."""
        if not isinstance(user, User):
            loaded = await self._db.get(User, user)
            if loaded is None:
                raise NotFoundError("Notification recipient not found")
            user = loaded

        notification = Notification(
            user_id=user.id,
            type=type_,
            title=title,
            message=message,
            order_id=order_id,
            ticket_id=ticket_id,
            data=data,
        )
        self._db.add(notification)
        await self._db.flush()
        logger.debug(f"Notification {type_.value} created for user {user.id}")

        if self._manager is not None:
            payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
            await self._manager.send_to_user(user.id, EventType.NOTIFICATION, payload)

        if self._email is not None and self._email.enabled and user.email_notifications:
            if self._background is not None:
                # Runs after the response is sent
                self._background.add_task(self._send_email, user.email, title, message)
            else:
                await self._send_email(user.email, title, message)

        return notification

    async def _send_email(self, to: str, subject: str, text: str) -> None:
        try:
            await self._email.send(to, subject, text)
        except EmailError as e:
            # Delivery by e-mail is best effort; the in-app notification stands
            logger.warning(f"E-mail notification to {to} failed: {e}")

    async def notify_admins(
        self,
        type_: NotificationType,
        title: str,
        message: str,
        *,
        exclude: uuid.UUID | None = None,
        **kwargs: Any,
    ) -> list[Notification]:
        """Notify every active admin, optionally skipping one (usually the actor)."""
        result = await self._db.execute(
            select(User).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
        )
        created = []
        for admin in result.scalars().all():
            if admin.id == exclude:
                continue
            created.append(await self.notify(admin, type_, title, message, **kwargs))
        return created

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read_at.is_(None))
        query = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id: uuid.UUID) -> int:
        return await self._db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read_at.is_(None),
            )
        ) or 0

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = await self._db.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")

        if notification.read_at is None:
            notification.read_at = datetime.now(timezone.utc)
            await self._db.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self._db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
            .values(read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self._db.flush()
        return result.rowcount or 0
