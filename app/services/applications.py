from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.application import ApplicationStatus, JobApplication
from app.schemas.application import ApplicationCreate
from app.services.nafath import InvalidOrExpiredSession, NafathService

logger = logging.getLogger(__name__)


async def create_application(
    *,
    data: ApplicationCreate,
    session: AsyncSession,
    nafath: NafathService,
) -> JobApplication:
    """
    Store an application.

    With a Nafath session token the verified identity replaces the typed-in
    name, national id and birth date, and the session is deleted in the same
    commit.
    """
    application = JobApplication(
        full_name=data.full_name.strip(),
        phone=data.phone,
        national_id=data.national_id,
        city=data.city,
        birth_date=data.birth_date,
        gender=data.gender,
        position=data.position,
        qualification=data.qualification,
        specialization=data.specialization,
        experience=data.experience,
        grade_type=data.grade_type,
        grade=data.grade,
        has_professional_license=data.has_professional_license,
        status=ApplicationStatus.UNDER_REVIEW,
        nafath_verified=False,
    )

    if data.nafath_session:
        identity = await nafath.consume_session(session, data.nafath_session)
        if identity is None:
            raise InvalidOrExpiredSession()

        application.full_name = identity.full_name
        application.national_id = identity.national_id
        application.birth_date = identity.birth_date
        application.nafath_verified = identity.verified
        application.nafath_transaction_id = identity.transaction_id

    session.add(application)
    await session.commit()
    await session.refresh(application)

    logger.info(
        "Application %s submitted (position=%s, nafath_verified=%s)",
        application.id,
        application.position,
        application.nafath_verified,
    )
    return application


async def get_application(*, application_id: int, session: AsyncSession) -> JobApplication | None:
    return await session.get(JobApplication, application_id)
