"""
Nafath session maintenance jobs.

Expired sessions are deleted lazily whenever they are touched; this job
removes the ones nobody touches again (abandoned flows, unread verified
sessions) so the table stays bounded.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.scheduler import register_job
from app.db.session import get_session_maker
from app.services.nafath import repository

logger = logging.getLogger(__name__)

JOB_ID_SWEEP_EXPIRED_SESSIONS = "nafath_sweep_expired_sessions"


async def sweep_expired_sessions(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> int:
    """Delete every session whose expiry is strictly before now. Returns the count."""
    maker = session_maker or get_session_maker()
    async with maker() as session:
        deleted = await repository.delete_expired(session, now=clock())

    if deleted:
        logger.info("Swept %d expired Nafath session(s)", deleted)
    else:
        logger.debug("No expired Nafath sessions to sweep")
    return deleted


def register_nafath_jobs(settings: Settings) -> bool:
    """Register the sweep job if enabled. Call before the scheduler starts."""
    if not settings.nafath_sweep_enabled:
        logger.info("Nafath session sweep disabled")
        return False

    register_job(
        job_id=JOB_ID_SWEEP_EXPIRED_SESSIONS,
        func=sweep_expired_sessions,
        trigger=IntervalTrigger(minutes=settings.nafath_sweep_interval_minutes),
    )
    logger.info(
        "Registered job: %s (interval: %d min)",
        JOB_ID_SWEEP_EXPIRED_SESSIONS,
        settings.nafath_sweep_interval_minutes,
    )
    return True
