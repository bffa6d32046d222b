from .config import settings, get_settings
from .database import engine, SessionLocal, get_db, get_session_factory, Base

__all__ = ["settings", "get_settings", "engine", "SessionLocal", "get_db", "get_session_factory", "Base"]
