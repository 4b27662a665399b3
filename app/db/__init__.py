# app/db/__init__.py
from __future__ import annotations

from app.db.base import Base, init_models
from app.db.session import AsyncSessionLocal, async_engine, get_session

__all__ = ["Base", "init_models", "AsyncSessionLocal", "async_engine", "get_session"]
