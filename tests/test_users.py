"""User administration and profile endpoints."""

from app.models.user import UserRole
from app.services.realtime import EventType
from tests.conftest import FakeWebSocket, login, make_account


async def test_admin_lists_users(client, admin, seller, buyer):
    response = await client.get("/api/users", headers=admin.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert {u["email"] for u in body["items"]} == {admin.email, seller.email, buyer.email}


async def test_admin_filters_users(client, admin, seller, buyer):
    by_role = await client.get("/api/users", params={"role": "SELLER"}, headers=admin.headers)
    assert [u["id"] for u in by_role.json()["items"]] == [str(seller.id)]

    by_search = await client.get("/api/users", params={"search": "MEHMET"}, headers=admin.headers)
    assert [u["id"] for u in by_search.json()["items"]] == [str(buyer.id)]


async def test_list_users_requires_admin(client, buyer):
    response = await client.get("/api/users", headers=buyer.headers)

    assert response.status_code == 403
    assert response.json() == {"message": "Admin access required"}


async def test_get_user_self_or_admin(client, admin, buyer, seller):
    assert (await client.get(f"/api/users/{buyer.id}", headers=buyer.headers)).status_code == 200
    assert (await client.get(f"/api/users/{buyer.id}", headers=admin.headers)).status_code == 200
    assert (await client.get(f"/api/users/{buyer.id}", headers=seller.headers)).status_code == 403


async def test_get_unknown_user(client, admin):
    response = await client.get(
        "/api/users/00000000-0000-0000-0000-000000000000", headers=admin.headers
    )

    assert response.status_code == 404


async def test_update_profile(client, buyer):
    response = await client.patch(
        "/api/users/me",
        json={"company": "Kaya Ticaret", "email_notifications": False},
        headers=buyer.headers,
    )

    assert response.status_code == 200
    assert response.json()["company"] == "Kaya Ticaret"
    assert response.json()["email_notifications"] is False


async def test_change_password(client, buyer):
    wrong = await client.put(
        "/api/users/me/password",
        json={"current_password": "nope", "new_password": "brand-new-pass"},
        headers=buyer.headers,
    )
    assert wrong.status_code == 400

    response = await client.put(
        "/api/users/me/password",
        json={"current_password": "secret123", "new_password": "brand-new-pass"},
        headers=buyer.headers,
    )
    assert response.status_code == 200
    assert await login(client, buyer.email, "brand-new-pass")


async def test_admin_changes_role(client, admin, buyer):
    response = await client.patch(
        f"/api/users/{buyer.id}", json={"role": "SELLER"}, headers=admin.headers
    )

    assert response.status_code == 200
    assert response.json()["role"] == "SELLER"


async def test_admin_cannot_change_self(client, admin):
    response = await client.patch(
        f"/api/users/{admin.id}", json={"is_active": False}, headers=admin.headers
    )

    assert response.status_code == 400


async def test_search_treats_wildcards_literally(client, admin, seller, buyer):
    for term in ("%", "_"):
        response = await client.get("/api/users", params={"search": term}, headers=admin.headers)
        assert response.json()["total"] == 0


async def test_profile_rejects_null_for_required_field(client, buyer):
    response = await client.patch(
        "/api/users/me", json={"email_notifications": None}, headers=buyer.headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Validation error"


async def test_profile_null_clears_optional_field(client, buyer):
    await client.patch("/api/users/me", json={"company": "Kaya Ticaret"}, headers=buyer.headers)
    response = await client.patch("/api/users/me", json={"company": None}, headers=buyer.headers)

    assert response.status_code == 200
    assert response.json()["company"] is None


async def test_demoted_admin_stops_receiving_admin_pushes(client, session_maker, manager, admin):
    second_admin = await make_account(client, session_maker, "ikinci@destek.io", UserRole.ADMIN)
    socket = FakeWebSocket()
    manager.register(socket, second_admin.id, UserRole.ADMIN)

    response = await client.patch(
        f"/api/users/{second_admin.id}",
        json={"role": "BUYER", "is_active": False},
        headers=admin.headers,
    )
    assert response.status_code == 200

    assert socket.close_code == 1008
    assert await manager.send_to_role(UserRole.ADMIN, EventType.NEW_TICKET_MESSAGE, {}) == 0
    assert socket.sent == []


async def test_unchanged_update_keeps_sockets(client, manager, admin, buyer):
    socket = FakeWebSocket()
    manager.register(socket, buyer.id, UserRole.BUYER)

    response = await client.patch(
        f"/api/users/{buyer.id}", json={"role": "BUYER"}, headers=admin.headers
    )

    assert response.status_code == 200
    assert socket.close_code is None
    assert manager.is_online(buyer.id)
