"""Core utilities: password hashing and access tokens."""

from app.core.security import (
    TokenError,
    create_access_token,
    decode_access_token,
    hash_password,
    new_session_token,
    verify_password,
)

__all__ = [
    "TokenError",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "new_session_token",
    "verify_password",
]
