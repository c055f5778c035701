"""Shared fixtures: in-memory SQLite, fake Redis and a private relay per test."""

import os

# Settings are read at import time, so configure the environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_API_URL"] = ""
os.environ["APP_SECRET_KEY"] = "test-secret-key"

import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.deps import get_manager
from app.core.security import hash_password
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.user import User, UserRole
from app.services.realtime import ConnectionManager

PASSWORD = "secret123"


@dataclass
class Account:
    """A persisted user plus the bearer headers of a live session."""

    id: uuid.UUID
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture
async def redis_client():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
async def client(session_maker, redis_client, manager) -> AsyncIterator[AsyncClient]:
    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_manager] = lambda: manager
    app.state.redis = redis_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(
    session_maker: async_sessionmaker[AsyncSession],
    email: str,
    role: UserRole = UserRole.BUYER,
    **fields,
) -> User:
    fields.setdefault("first_name", email.split("@")[0].capitalize())
    fields.setdefault("last_name", "Test")
    async with session_maker() as session:
        user = User(email=email, password_hash=hash_password(PASSWORD), role=role, **fields)
        session.add(user)
        await session.commit()
    return user


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> str:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


async def make_account(client, session_maker, email: str, role: UserRole, **fields) -> Account:
    user = await create_user(session_maker, email, role, **fields)
    return Account(id=user.id, email=email, token=await login(client, email))


@pytest.fixture
async def admin(client, session_maker) -> Account:
    return await make_account(client, session_maker, "admin@destek.io", UserRole.ADMIN)


@pytest.fixture
async def seller(client, session_maker) -> Account:
    return await make_account(client, session_maker, "ayse@destek.io", UserRole.SELLER)


@pytest.fixture
async def buyer(client, session_maker) -> Account:
    return await make_account(client, session_maker, "mehmet@destek.io", UserRole.BUYER)


@pytest.fixture
async def other_buyer(client, session_maker) -> Account:
    return await make_account(client, session_maker, "zeynep@destek.io", UserRole.BUYER)


@pytest.fixture
async def product(client, seller) -> dict:
    response = await client.post(
        "/api/products",
        json={
            "name": "iPhone 14 Pro",
            "description": "128 GB, space black",
            "category": "elektronik",
            "price": "100.00",
            "stock": 10,
            "min_order_quantity": 2,
        },
        headers=seller.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class FakeWebSocket:
    """Records frames sent through the relay; can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_code = code
