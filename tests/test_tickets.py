"""Support tickets: CRUD contract, status rules, internal notes and access."""

import json

import pytest

from app.models.user import UserRole
from tests.conftest import FakeWebSocket, make_account

NEW_TICKET = {
    "subject": "Fatura görüntülenmiyor",
    "body": "Geçen ayın faturasını panelde göremiyorum.",
    "priority": "HIGH",
    "category": "BILLING",
}


@pytest.fixture
async def ticket(client, buyer, admin) -> dict:
    response = await client.post("/api/tickets", json=NEW_TICKET, headers=buyer.headers)
    assert response.status_code == 201, response.text
    return response.json()


async def reply(client, account, ticket, content, **extra):
    return await client.post(
        f"/api/tickets/{ticket['id']}/messages",
        json={"content": content, **extra},
        headers=account.headers,
    )


async def get_ticket(client, account, ticket):
    return await client.get(f"/api/tickets/{ticket['id']}", headers=account.headers)


async def test_create_and_fetch(client, buyer, ticket):
    assert ticket["status"] == "OPEN"
    assert ticket["priority"] == "HIGH"
    assert ticket["category"] == "BILLING"
    assert ticket["user_id"] == str(buyer.id)

    response = await get_ticket(client, buyer, ticket)
    assert response.status_code == 200
    assert response.json()["ticket"]["subject"] == NEW_TICKET["subject"]
    assert response.json()["messages"] == []


async def test_create_defaults(client, buyer):
    response = await client.post(
        "/api/tickets",
        json={"subject": "Soru", "body": "Sipariş nasıl iptal edilir?"},
        headers=buyer.headers,
    )

    assert response.status_code == 201
    assert response.json()["priority"] == "MEDIUM"
    assert response.json()["category"] == "OTHER"


async def test_create_validation(client, buyer):
    response = await client.post(
        "/api/tickets", json={"subject": "x", "body": "kısa"}, headers=buyer.headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Validation error"


async def test_create_notifies_and_pushes_to_admins(client, buyer, admin, manager):
    admin_ws = FakeWebSocket()
    manager.register(admin_ws, admin.id, UserRole.ADMIN)

    await client.post("/api/tickets", json=NEW_TICKET, headers=buyer.headers)

    notifications = (await client.get("/api/notifications", headers=admin.headers)).json()
    assert [n["type"] for n in notifications] == ["TICKET_CREATED"]
    frames = [json.loads(f)["type"] for f in admin_ws.sent]
    assert "new_ticket" in frames


async def test_visibility(client, buyer, other_buyer, admin, ticket):
    assert (await get_ticket(client, other_buyer, ticket)).status_code == 403
    assert (await get_ticket(client, admin, ticket)).status_code == 200

    mine = (await client.get("/api/tickets", headers=buyer.headers)).json()
    theirs = (await client.get("/api/tickets", headers=other_buyer.headers)).json()
    everything = (await client.get("/api/tickets", headers=admin.headers)).json()
    assert [t["id"] for t in mine] == [ticket["id"]]
    assert theirs == []
    assert [t["id"] for t in everything] == [ticket["id"]]


async def test_unknown_ticket(client, buyer):
    response = await client.get(
        "/api/tickets/00000000-0000-0000-0000-000000000000", headers=buyer.headers
    )

    assert response.status_code == 404
    assert response.json() == {"message": "Ticket not found"}


async def test_list_filters(client, buyer, admin, ticket):
    await client.post(
        "/api/tickets",
        json={"subject": "Giriş sorunu", "body": "Şifremi sıfırlayamıyorum.", "category": "ACCOUNT"},
        headers=buyer.headers,
    )

    billing = await client.get("/api/tickets", params={"category": "BILLING"}, headers=admin.headers)
    assert [t["id"] for t in billing.json()] == [ticket["id"]]

    high = await client.get("/api/tickets", params={"priority": "HIGH"}, headers=admin.headers)
    assert len(high.json()) == 1

    closed = await client.get("/api/tickets", params={"status": "CLOSED"}, headers=admin.headers)
    assert closed.json() == []


async def test_admin_reply_answers_ticket(client, buyer, admin, ticket):
    response = await reply(client, admin, ticket, "Faturanız e-posta ile gönderildi.")

    assert response.status_code == 201
    assert response.json()["is_admin"] is True

    detail = (await get_ticket(client, buyer, ticket)).json()
    assert detail["ticket"]["status"] == "ANSWERED"
    assert len(detail["messages"]) == 1

    notifications = (await client.get("/api/notifications", headers=buyer.headers)).json()
    assert notifications[0]["type"] == "TICKET_UPDATED"


async def test_owner_reply_reopens_answered_ticket(client, buyer, admin, ticket):
    await reply(client, admin, ticket, "Hangi ayın faturası?")
    await reply(client, buyer, ticket, "Eylül ayı faturası.")

    detail = (await get_ticket(client, buyer, ticket)).json()
    assert detail["ticket"]["status"] == "OPEN"


async def test_owner_reply_on_open_ticket_keeps_status(client, buyer, ticket):
    await reply(client, buyer, ticket, "Ek bilgi: tarayıcı Firefox.")

    assert (await get_ticket(client, buyer, ticket)).json()["ticket"]["status"] == "OPEN"


async def test_internal_note_hidden_from_owner(client, buyer, admin, manager, ticket):
    buyer_ws = FakeWebSocket()
    manager.register(buyer_ws, buyer.id, UserRole.BUYER)

    response = await reply(client, admin, ticket, "Muhasebeye soruldu.", is_internal=True)
    assert response.json()["is_internal"] is True

    owner_view = (await get_ticket(client, buyer, ticket)).json()
    admin_view = (await get_ticket(client, admin, ticket)).json()
    assert owner_view["messages"] == []
    assert len(admin_view["messages"]) == 1
    assert owner_view["ticket"]["status"] == "OPEN"
    assert buyer_ws.sent == []


async def test_internal_flag_ignored_for_owner(client, buyer, admin, ticket):
    response = await reply(client, buyer, ticket, "Gizli olmasın", is_internal=True)

    assert response.json()["is_internal"] is False


async def test_owner_reply_notifies_assignee_only(client, session_maker, buyer, admin, ticket):
    second_admin = await make_account(client, session_maker, "destek2@destek.io", UserRole.ADMIN)
    assign = await client.patch(
        f"/api/tickets/{ticket['id']}/assign",
        json={"assigned_to": str(second_admin.id)},
        headers=admin.headers,
    )
    assert assign.status_code == 200

    await reply(client, buyer, ticket, "Güncelleme var mı?")

    first_admin_types = [n["type"] for n in (await client.get("/api/notifications", headers=admin.headers)).json()]
    second_admin_types = [
        n["type"] for n in (await client.get("/api/notifications", headers=second_admin.headers)).json()
    ]
    assert first_admin_types == ["TICKET_CREATED"]
    assert second_admin_types == ["TICKET_UPDATED"]


async def test_closed_ticket_rejects_messages(client, buyer, admin, ticket):
    await client.patch(
        f"/api/tickets/{ticket['id']}/status", json={"status": "CLOSED"}, headers=admin.headers
    )

    response = await reply(client, buyer, ticket, "Hâlâ sorun var.")

    assert response.status_code == 400
    assert response.json() == {"message": "Ticket is closed"}


async def test_status_update_admin_only(client, buyer, admin, manager, ticket):
    denied = await client.patch(
        f"/api/tickets/{ticket['id']}/status", json={"status": "CLOSED"}, headers=buyer.headers
    )
    assert denied.status_code == 403

    buyer_ws = FakeWebSocket()
    manager.register(buyer_ws, buyer.id, UserRole.BUYER)

    response = await client.patch(
        f"/api/tickets/{ticket['id']}/status", json={"status": "CLOSED"}, headers=admin.headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"

    notifications = (await client.get("/api/notifications", headers=buyer.headers)).json()
    assert notifications[0]["type"] == "TICKET_CLOSED"
    assert "ticket_status_updated" in [json.loads(f)["type"] for f in buyer_ws.sent]


async def test_assign_requires_admin_assignee(client, buyer, admin, ticket):
    response = await client.patch(
        f"/api/tickets/{ticket['id']}/assign",
        json={"assigned_to": str(buyer.id)},
        headers=admin.headers,
    )
    assert response.status_code == 400

    cleared = await client.patch(
        f"/api/tickets/{ticket['id']}/assign", json={"assigned_to": None}, headers=admin.headers
    )
    assert cleared.status_code == 200
    assert cleared.json()["assigned_to"] is None


async def test_assigned_to_me_filter(client, admin, ticket):
    await client.patch(
        f"/api/tickets/{ticket['id']}/assign",
        json={"assigned_to": str(admin.id)},
        headers=admin.headers,
    )

    response = await client.get("/api/tickets", params={"assigned_to_me": True}, headers=admin.headers)

    assert [t["id"] for t in response.json()] == [ticket["id"]]


async def test_delete_ticket(client, buyer, admin, ticket):
    await reply(client, buyer, ticket, "Ek mesaj")

    assert (
        await client.delete(f"/api/tickets/{ticket['id']}", headers=buyer.headers)
    ).status_code == 403

    response = await client.delete(f"/api/tickets/{ticket['id']}", headers=admin.headers)
    assert response.status_code == 204
    assert (await get_ticket(client, admin, ticket)).status_code == 404


async def test_stats(client, buyer, admin, ticket):
    await client.post(
        "/api/tickets",
        json={"subject": "İkinci", "body": "Başka bir sorum daha var.", "priority": "LOW"},
        headers=buyer.headers,
    )
    await client.patch(
        f"/api/tickets/{ticket['id']}/status", json={"status": "CLOSED"}, headers=admin.headers
    )

    response = await client.get("/api/tickets/stats", headers=admin.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["by_status"]["OPEN"] == 1
    assert body["by_status"]["CLOSED"] == 1
    assert body["by_priority"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 1, "URGENT": 0}

    assert (await client.get("/api/tickets/stats", headers=buyer.headers)).status_code == 403
