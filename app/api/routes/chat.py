"""Order chat endpoints."""

from uuid import UUID

from fastapi import APIRouter

from app.api.deps import Chats, CurrentUser
from app.schemas.common import CountResponse
from app.schemas.order import ChatMessageCreate, ChatMessageResponse, ChatRoomResponse

router = APIRouter(prefix="/api/chat", tags=["Chat"])


def _room_response(room, unread: int = 0) -> ChatRoomResponse:
    response = ChatRoomResponse.model_validate(room)
    response.unread_count = unread
    return response


@router.get("/rooms", response_model=list[ChatRoomResponse])
async def list_rooms(user: CurrentUser, chats: Chats) -> list[ChatRoomResponse]:
    return [_room_response(room, unread) for room, unread in await chats.list_rooms(user)]


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(user: CurrentUser, chats: Chats) -> CountResponse:
    return CountResponse(count=await chats.unread_count(user))


@router.get("/orders/{order_id}/room", response_model=ChatRoomResponse)
async def get_order_room(order_id: UUID, user: CurrentUser, chats: Chats) -> ChatRoomResponse:
    return _room_response(await chats.get_room_by_order(order_id, user))


@router.get("/rooms/{room_id}", response_model=ChatRoomResponse)
async def get_room(room_id: UUID, user: CurrentUser, chats: Chats) -> ChatRoomResponse:
    return _room_response(await chats.get_room(room_id, user))


@router.get("/rooms/{room_id}/messages", response_model=list[ChatMessageResponse])
async def list_messages(room_id: UUID, user: CurrentUser, chats: Chats) -> list[ChatMessageResponse]:
    """Room history, oldest first. Marks messages sent to the caller as read."""
    messages = await chats.list_messages(room_id, user)
    return [ChatMessageResponse.model_validate(m) for m in messages]


@router.post("/rooms/{room_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def send_message(
    room_id: UUID,
    payload: ChatMessageCreate,
    user: CurrentUser,
    chats: Chats,
) -> ChatMessageResponse:
    return ChatMessageResponse.model_validate(await chats.send_message(room_id, user, payload))
