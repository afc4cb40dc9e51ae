"""Core module exports"""
from .config import settings
from .database import engine, async_session_maker, get_db, init_db, close_db

__all__ = ["settings", "engine", "async_session_maker", "get_db", "init_db", "close_db"]
