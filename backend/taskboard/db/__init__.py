"""Database package."""

from taskboard.db.base import Base, BaseModel
from taskboard.db.session import DBSession, async_session_factory, engine, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "async_session_factory", "engine", "get_db_session"]
