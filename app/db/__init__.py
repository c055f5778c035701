"""Database engine, session dependency and declarative base."""

from app.db.base import Base, JSONType
from app.db.session import async_session_maker, engine, get_db, get_session_maker

__all__ = ["Base", "JSONType", "async_session_maker", "engine", "get_db", "get_session_maker"]
