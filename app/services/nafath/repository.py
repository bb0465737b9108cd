from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.nafath_session import Gender, NafathSession


async def create_session(
    session: AsyncSession,
    *,
    session_token: str,
    state: str,
    gender: Gender,
    now: datetime,
    ttl: timedelta,
) -> NafathSession:
    record = NafathSession(
        session_token=session_token,
        state=state,
        gender=gender,
        verified=False,
        created_at=now,
        expires_at=now + ttl,
    )
    session.add(record)
    await session.commit()
    return record


async def get_by_token(session: AsyncSession, session_token: str) -> NafathSession | None:
    result = await session.execute(
        select(NafathSession)
        .where(NafathSession.session_token == session_token)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_unverified_by_state(session: AsyncSession, state: str) -> NafathSession | None:
    result = await session.execute(
        select(NafathSession)
        .where(NafathSession.state == state, NafathSession.verified.is_(False))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_verified_by_token(session: AsyncSession, session_token: str) -> NafathSession | None:
    result = await session.execute(
        select(NafathSession)
        .where(NafathSession.session_token == session_token, NafathSession.verified.is_(True))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def mark_verified(
    session: AsyncSession,
    session_token: str,
    *,
    oauth_code: str,
    access_token: str,
    user_data: dict,
) -> bool:
    """Write the whole verified result in one UPDATE. False if the row is gone or already verified."""
    result = await session.execute(
        update(NafathSession)
        .where(
            NafathSession.session_token == session_token,
            NafathSession.verified.is_(False),
        )
        .values(
            oauth_code=oauth_code,
            access_token=access_token,
            user_data=user_data,
            verified=True,
        )
    )
    await session.commit()
    return result.rowcount == 1


async def delete_by_token(session: AsyncSession, session_token: str, *, commit: bool = True) -> int:
    result = await session.execute(
        delete(NafathSession).where(NafathSession.session_token == session_token)
    )
    if commit:
        await session.commit()
    return result.rowcount


async def delete_by_state(session: AsyncSession, state: str) -> int:
    result = await session.execute(
        delete(NafathSession).where(NafathSession.state == state, NafathSession.verified.is_(False))
    )
    await session.commit()
    return result.rowcount


async def delete_expired(session: AsyncSession, *, now: datetime) -> int:
    # Strict: a row expiring exactly at ``now`` survives this sweep.
    result = await session.execute(
        delete(NafathSession).where(NafathSession.expires_at < now)
    )
    await session.commit()
    return result.rowcount or 0
