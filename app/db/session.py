from __future__ import annotations

from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import get_settings

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def configure_database(url: str, *, echo: bool = False, **engine_kwargs: Any) -> AsyncEngine:
    """(Re)bind the module-level engine and session factory to ``url``."""
    global _engine, _session_maker

    _engine = create_async_engine(url, echo=echo, future=True, **engine_kwargs)
    _session_maker = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        settings = get_settings()
        return configure_database(settings.database_url, echo=settings.database_echo)
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        get_engine()
    assert _session_maker is not None
    return _session_maker


async def dispose_engine() -> None:
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None


async def get_async_session() -> AsyncIterator[AsyncSession]:
    async with get_session_maker()() as session:
        yield session
