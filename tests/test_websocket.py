"""The /ws endpoint driven through Starlette's synchronous TestClient.

Everything async (schema creation, seeding, the fake Redis) runs on the
TestClient's own event loop via its portal.
"""

from collections.abc import Iterator

import pytest
import redis.asyncio
from fakeredis import FakeAsyncRedis
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool
from starlette.websockets import WebSocketDisconnect

from app.api.deps import get_manager
from app.core.security import hash_password
from app.db.base import Base
from app.db.session import get_db, get_session_maker
from app.main import app
from app.models.user import User, UserRole
from app.services.realtime import ConnectionManager
from tests.conftest import PASSWORD


@pytest.fixture
def relay() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def ws_engine(tmp_path) -> AsyncEngine:
    # A single pooled connection: anything that keeps one checked out starves HTTP requests
    return create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=2,
    )


@pytest.fixture
def ws_client(monkeypatch, relay, ws_engine) -> Iterator[TestClient]:
    session_maker = async_sessionmaker(ws_engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_schema() -> None:
        async with ws_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def seed() -> None:
        async with session_maker() as session:
            for email, role in (("admin@destek.io", UserRole.ADMIN), ("mehmet@destek.io", UserRole.BUYER)):
                session.add(
                    User(
                        email=email,
                        password_hash=hash_password(PASSWORD),
                        role=role,
                        first_name=email.split("@")[0].capitalize(),
                    )
                )
            await session.commit()

    monkeypatch.setattr(redis.asyncio, "from_url", lambda *args, **kwargs: FakeAsyncRedis(decode_responses=True))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_manager] = lambda: relay

    with TestClient(app) as client:
        client.portal.call(create_schema)
        client.portal.call(seed)
        yield client
        client.portal.call(ws_engine.dispose)

    app.dependency_overrides.clear()


def token_for(client: TestClient, email: str) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def test_connect_with_query_token(ws_client, relay):
    token = token_for(ws_client, "mehmet@destek.io")

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connected"
        assert relay.online_user_count == 1

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong", "data": None}


def test_connect_with_auth_frame(ws_client, relay):
    token = token_for(ws_client, "mehmet@destek.io")

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": token})
        assert ws.receive_json()["type"] == "connected"

        ws.send_text("ping")
        assert ws.receive_json()["type"] == "pong"


def test_invalid_token_closes_with_policy_violation(ws_client, relay):
    with ws_client.websocket_connect("/ws?token=not-a-jwt") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008
    assert relay.online_user_count == 0


def test_bad_auth_frame_closes_with_policy_violation(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "hello"})
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008


def test_logged_out_session_is_rejected(ws_client):
    token = token_for(ws_client, "mehmet@destek.io")
    ws_client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008


def test_admin_receives_new_ticket_push(ws_client):
    admin_token = token_for(ws_client, "admin@destek.io")
    buyer_token = token_for(ws_client, "mehmet@destek.io")

    with ws_client.websocket_connect(f"/ws?token={admin_token}") as ws:
        ws.receive_json()

        response = ws_client.post(
            "/api/tickets",
            json={"subject": "Ödeme hatası", "body": "Kart ödemesi reddediliyor."},
            headers={"Authorization": f"Bearer {buyer_token}"},
        )
        assert response.status_code == 201

        notification = ws.receive_json()
        new_ticket = ws.receive_json()

    assert notification["type"] == "notification"
    assert notification["data"]["type"] == "TICKET_CREATED"
    assert new_ticket["type"] == "new_ticket"
    assert new_ticket["data"]["id"] == response.json()["id"]


def test_open_socket_holds_no_db_connection(ws_client, ws_engine):
    token = token_for(ws_client, "mehmet@destek.io")

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        assert ws.receive_json()["type"] == "connected"
        assert ws_engine.sync_engine.pool.checkedout() == 0

        response = ws_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200


def test_logout_closes_open_socket(ws_client, relay):
    token = token_for(ws_client, "mehmet@destek.io")

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.receive_json()
        response = ws_client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008
    assert relay.online_user_count == 0
