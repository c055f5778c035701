"""Login sessions stored in Redis.

Each login creates ``session:<token>`` holding the user id, with a TTL equal
to the configured session lifetime. Logout deletes the key, which revokes
every JWT issued for that session.
"""

import logging
import uuid

import redis.asyncio as redis

from app.config import get_settings
from app.core.security import new_session_token

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"


def _key(token: str) -> str:
    return f"{SESSION_KEY_PREFIX}{token}"


class SessionStore:
    """Create, resolve and revoke login sessions."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client
        self._ttl = get_settings().session_ttl_seconds

    async def create(self, user_id: uuid.UUID) -> str:
        token = new_session_token()
        await self._redis.set(_key(token), str(user_id), ex=self._ttl)
        logger.debug(f"Session created for user {user_id}")
        return token

    async def get_user_id(self, token: str) -> uuid.UUID | None:
        value = await self._redis.get(_key(token))
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        try:
            return uuid.UUID(value)
        except ValueError:
            logger.warning(f"Corrupt session value for token {token[:8]}...")
            return None

    async def delete(self, token: str) -> bool:
        return bool(await self._redis.delete(_key(token)))
