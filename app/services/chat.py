"""Order chat rooms and their messages."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import ChatMessage, ChatRoom
from app.models.notification import NotificationType
from app.models.user import User
from app.schemas.order import ChatMessageCreate, ChatMessageResponse
from app.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.services.notifications import NotificationService
from app.services.realtime import ConnectionManager, EventType

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


class ChatService:
    """Storage adapter for chat rooms and chat messages."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService,
        manager: ConnectionManager,
    ) -> None:
        self._db = db
        self._notifications = notifications
        self._manager = manager

    async def list_rooms(self, user: User) -> list[tuple[ChatRoom, int]]:
        """Rooms the user takes part in, most recent activity first, with unread counts."""
        result = await self._db.execute(
            select(ChatRoom)
            .where(or_(ChatRoom.buyer_id == user.id, ChatRoom.seller_id == user.id))
            .order_by(func.coalesce(ChatRoom.last_message_at, ChatRoom.created_at).desc())
        )
        rooms = list(result.scalars().all())

        unread_rows = await self._db.execute(
            select(ChatMessage.chat_room_id, func.count(ChatMessage.id))
            .where(ChatMessage.receiver_id == user.id, ChatMessage.is_read.is_(False))
            .group_by(ChatMessage.chat_room_id)
        )
        unread = {room_id: count for room_id, count in unread_rows.all()}
        return [(room, unread.get(room.id, 0)) for room in rooms]

    async def get_room(self, room_id: uuid.UUID, user: User) -> ChatRoom:
        room = await self._db.get(ChatRoom, room_id)
        if room is None:
            raise NotFoundError("Chat room not found")
        self._check_access(room, user)
        return room

    async def get_room_by_order(self, order_id: uuid.UUID, user: User) -> ChatRoom:
        room = await self._db.scalar(select(ChatRoom).where(ChatRoom.order_id == order_id))
        if room is None:
            raise NotFoundError("Chat room not found")
        self._check_access(room, user)
        return room

    async def list_messages(self, room_id: uuid.UUID, user: User) -> list[ChatMessage]:
        """Return the room history and mark messages addressed to the user as read."""
        room = await self.get_room(room_id, user)
        result = await self._db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_room_id == room.id)
            .order_by(ChatMessage.created_at.asc())
        )
        messages = list(result.scalars().all())

        newly_read = [m for m in messages if m.receiver_id == user.id and not m.is_read]
        if newly_read:
            for message in newly_read:
                message.is_read = True
            await self._db.flush()
            await self._manager.send_to_user(
                room.other_participant(user.id),
                EventType.MESSAGE_READ,
                {
                    "chat_room_id": str(room.id),
                    "message_ids": [str(m.id) for m in newly_read],
                    "reader_id": str(user.id),
                },
            )
        return messages

    async def send_message(
        self,
        room_id: uuid.UUID,
        sender: User,
        data: ChatMessageCreate,
    ) -> ChatMessage:
        room = await self._db.get(ChatRoom, room_id)
        if room is None:
            raise NotFoundError("Chat room not found")
        if not room.has_participant(sender.id):
            raise PermissionDeniedError("Only the buyer and the seller can write here")
        if not room.is_active:
            raise ValidationFailedError("This chat room is closed")

        receiver_id = room.other_participant(sender.id)
        message = ChatMessage(
            chat_room_id=room.id,
            sender_id=sender.id,
            receiver_id=receiver_id,
            type=data.type,
            content=data.content,
        )
        self._db.add(message)
        await self._db.flush()
        room.last_message_at = message.created_at
        await self._db.flush()

        payload = ChatMessageResponse.model_validate(message).model_dump(mode="json")
        payload["sender_name"] = sender.full_name
        await self._manager.send_to_users(
            [room.buyer_id, room.seller_id], EventType.NEW_MESSAGE, payload
        )

        preview = data.content[:PREVIEW_LENGTH]
        await self._notifications.notify(
            receiver_id,
            NotificationType.NEW_MESSAGE,
            f"New message from {sender.full_name}",
            preview,
            order_id=room.order_id,
            data={"chat_room_id": str(room.id)},
        )
        return message

    async def unread_count(self, user: User) -> int:
        return await self._db.scalar(
            select(func.count(ChatMessage.id)).where(
                ChatMessage.receiver_id == user.id, ChatMessage.is_read.is_(False)
            )
        ) or 0

    @staticmethod
    def _check_access(room: ChatRoom, user: User) -> None:
        # Admins may read any room for moderation
        if not user.is_admin and not room.has_participant(user.id):
            raise PermissionDeniedError("Access denied")
