"""Registration, login and logout."""

import logging

from fastapi import APIRouter, HTTPException, Request

from app.api.deps import CurrentUser, Manager, RedisClient, SessionToken, Users
from app.api.limiter import limiter
from app.config import get_settings
from app.core.security import create_access_token
from app.schemas.common import MessageResponse
from app.schemas.user import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from app.services.sessions import SessionStore

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
async def register(request: Request, payload: RegisterRequest, users: Users) -> UserResponse:
    """Create a buyer or seller account."""
    user = await users.register(payload)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    payload: LoginRequest,
    users: Users,
    redis_client: RedisClient,
) -> TokenResponse:
    """Exchange credentials for a bearer token backed by a server-side session."""
    user = await users.authenticate(payload.email, payload.password)
    if user is None:
        logger.warning(f"Failed login for {payload.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    session_token = await SessionStore(redis_client).create(user.id)
    logger.info(f"User logged in: {user.id}")
    return TokenResponse(
        access_token=create_access_token(user.id, session_token),
        user=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    user: CurrentUser,
    session_token: SessionToken,
    redis_client: RedisClient,
    manager: Manager,
) -> MessageResponse:
    """Revoke the session behind the current token and close the user's sockets."""
    await SessionStore(redis_client).delete(session_token)
    await manager.disconnect_user(user.id, "logout")
    logger.info(f"User logged out: {user.id}")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(user)
