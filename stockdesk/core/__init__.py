from .config import settings
from .database import engine, SessionLocal, get_db, Base
from .errors import AppError

__all__ = ["settings", "engine", "SessionLocal", "get_db", "Base", "AppError"]
