from __future__ import annotations

from app.db.base import Base
from app.db.session import (
    configure_database,
    dispose_engine,
    get_async_session,
    get_engine,
    get_session_maker,
)

__all__ = [
    "Base",
    "configure_database",
    "dispose_engine",
    "get_async_session",
    "get_engine",
    "get_session_maker",
]
