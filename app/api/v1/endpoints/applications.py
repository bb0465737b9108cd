from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_nafath_service
from app.db.session import get_async_session
from app.schemas.application import ApplicationCreate, ApplicationResponse
from app.services.applications import create_application, get_application
from app.services.nafath import InvalidOrExpiredSession, NafathService


router = APIRouter()

APPLICATION_NOT_FOUND = "الطلب غير موجود"


@router.post("", response_model=ApplicationResponse)
async def submit_application(
    payload: ApplicationCreate,
    nafath: NafathService = Depends(get_nafath_service),
    session: AsyncSession = Depends(get_async_session),
):
    try:
        application = await create_application(data=payload, session=session, nafath=nafath)
    except InvalidOrExpiredSession as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return ApplicationResponse.model_validate(application)


@router.get("/{application_id}", response_model=ApplicationResponse)
async def read_application(
    application_id: int,
    session: AsyncSession = Depends(get_async_session),
):
    application = await get_application(application_id=application_id, session=session)
    if application is None:
        raise HTTPException(status_code=404, detail=APPLICATION_NOT_FOUND)
    return ApplicationResponse.model_validate(application)
