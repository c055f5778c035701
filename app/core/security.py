"""Password hashing and JWT helpers.

Access tokens are signed JWTs carrying the user id (``sub``) and the id of a
server-side session (``sid``). The session lives in Redis so that logout can
revoke a token before it expires.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenError(Exception):
    """Raised when an access token cannot be decoded or is incomplete."""
    pass


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


def create_access_token(
    user_id: uuid.UUID,
    session_token: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a JWT for the given user and session."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    expire = datetime.now(timezone.utc) + expires_delta
    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "sid": session_token,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.app_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> tuple[uuid.UUID, str]:
    """Decode a JWT and return ``(user_id, session_token)``.

    Raises:
        TokenError: If the signature, expiry or claims are invalid
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.app_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise TokenError(str(e)) from e

    sub = payload.get("sub")
    sid = payload.get("sid")
    if not sub or not sid:
        raise TokenError("Token is missing required claims")

    try:
        return uuid.UUID(sub), sid
    except ValueError as e:
        raise TokenError("Token subject is not a valid id") from e
