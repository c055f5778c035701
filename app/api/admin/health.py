"""Liveness and dependency health endpoints."""

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.api.deps import DbSession, Manager, RedisClient
from app.config import get_settings

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ServiceHealth(BaseModel):
    """Status of one backing service."""

    status: str
    latency_ms: float | None = None
    error: str | None = None


class DetailedHealthResponse(BaseModel):
    status: str
    environment: str
    timestamp: str
    services: dict[str, ServiceHealth]
    websocket_users: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _probe(name: str, check: Callable[[], Awaitable[Any]]) -> ServiceHealth:
    start = time.perf_counter()
    try:
        await check()
    except Exception as e:
        logger.error(f"Health check for {name} failed: {e}")
        return ServiceHealth(status="unhealthy", error=str(e))
    return ServiceHealth(status="healthy", latency_ms=round((time.perf_counter() - start) * 1000, 2))


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", timestamp=_now())


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    db: DbSession,
    redis_client: RedisClient,
    manager: Manager,
) -> DetailedHealthResponse:
    """Ping the database and Redis; any failure degrades the overall status."""
    services = {
        "database": await _probe("database", lambda: db.execute(text("SELECT 1"))),
        "redis": await _probe("redis", redis_client.ping),
    }
    healthy = all(s.status == "healthy" for s in services.values())

    return DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        environment=get_settings().app_env,
        timestamp=_now(),
        services=services,
        websocket_users=manager.online_user_count,
    )
