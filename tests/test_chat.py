"""Order chat rooms, messages and read tracking."""

import json

import pytest

from app.models.user import UserRole
from tests.conftest import FakeWebSocket


@pytest.fixture
async def room(client, buyer, product) -> dict:
    order = await client.post(
        "/api/orders", json={"product_id": product["id"], "quantity": 2}, headers=buyer.headers
    )
    assert order.status_code == 201, order.text
    response = await client.get(f"/api/chat/orders/{order.json()['id']}/room", headers=buyer.headers)
    return response.json()


async def send(client, account, room, content):
    return await client.post(
        f"/api/chat/rooms/{room['id']}/messages", json={"content": content}, headers=account.headers
    )


async def test_send_message(client, buyer, seller, room):
    response = await send(client, buyer, room, "Merhaba, kargo ne zaman çıkar?")

    assert response.status_code == 201
    message = response.json()
    assert message["sender_id"] == str(buyer.id)
    assert message["receiver_id"] == str(seller.id)
    assert message["is_read"] is False


async def test_message_notifies_receiver(client, buyer, seller, room):
    await send(client, buyer, room, "Merhaba")

    notifications = (await client.get("/api/notifications", headers=seller.headers)).json()
    assert notifications[0]["type"] == "NEW_MESSAGE"
    assert notifications[0]["data"] == {"chat_room_id": room["id"]}


async def test_message_pushed_to_both_sides(client, buyer, seller, manager, room):
    buyer_ws, seller_ws = FakeWebSocket(), FakeWebSocket()
    manager.register(buyer_ws, buyer.id, UserRole.BUYER)
    manager.register(seller_ws, seller.id, UserRole.SELLER)

    await send(client, seller, room, "Yarın kargoda")

    for ws in (buyer_ws, seller_ws):
        frames = [json.loads(f) for f in ws.sent]
        new_messages = [f for f in frames if f["type"] == "new_message"]
        assert len(new_messages) == 1
        assert new_messages[0]["data"]["content"] == "Yarın kargoda"
        assert new_messages[0]["data"]["sender_name"] == "Ayse Test"


async def test_outsider_cannot_write(client, other_buyer, room):
    response = await send(client, other_buyer, room, "Ben de buradayım")

    assert response.status_code == 403


async def test_outsider_cannot_read(client, other_buyer, room):
    response = await client.get(f"/api/chat/rooms/{room['id']}/messages", headers=other_buyer.headers)

    assert response.status_code == 403


async def test_admin_can_read_room(client, admin, buyer, room):
    await send(client, buyer, room, "Merhaba")

    response = await client.get(f"/api/chat/rooms/{room['id']}/messages", headers=admin.headers)

    assert response.status_code == 200
    assert len(response.json()) == 1


async def test_reading_marks_messages_and_notifies_sender(client, buyer, seller, manager, room):
    await send(client, buyer, room, "Birinci")
    await send(client, buyer, room, "İkinci")
    assert (await client.get("/api/chat/unread-count", headers=seller.headers)).json() == {"count": 2}

    buyer_ws = FakeWebSocket()
    manager.register(buyer_ws, buyer.id, UserRole.BUYER)

    response = await client.get(f"/api/chat/rooms/{room['id']}/messages", headers=seller.headers)

    assert [m["content"] for m in response.json()] == ["Birinci", "İkinci"]
    assert (await client.get("/api/chat/unread-count", headers=seller.headers)).json() == {"count": 0}
    read_events = [json.loads(f) for f in buyer_ws.sent if '"message_read"' in f]
    assert len(read_events) == 1
    assert len(read_events[0]["data"]["message_ids"]) == 2


async def test_list_rooms_with_unread(client, buyer, seller, room):
    await send(client, buyer, room, "Merhaba")

    seller_rooms = (await client.get("/api/chat/rooms", headers=seller.headers)).json()
    buyer_rooms = (await client.get("/api/chat/rooms", headers=buyer.headers)).json()

    assert [(r["id"], r["unread_count"]) for r in seller_rooms] == [(room["id"], 1)]
    assert [(r["id"], r["unread_count"]) for r in buyer_rooms] == [(room["id"], 0)]


async def test_closed_room_rejects_messages(client, seller, room):
    response = await client.patch(
        f"/api/orders/{room['order_id']}/status", json={"status": "REJECTED"}, headers=seller.headers
    )
    assert response.status_code == 200

    response = await send(client, seller, room, "Üzgünüz")

    assert response.status_code == 400
    assert response.json() == {"message": "This chat room is closed"}


async def test_unknown_room(client, buyer):
    response = await client.get(
        "/api/chat/rooms/00000000-0000-0000-0000-000000000000", headers=buyer.headers
    )

    assert response.status_code == 404
