import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import RedirectResponse

from app.api.v1.deps import get_nafath_service
from app.core.config import Settings, get_settings
from app.core.rate_limit import limiter
from app.db.session import get_async_session
from app.schemas.nafath import (
    InitiateRequest,
    InitiateResponse,
    MessageResponse,
    NafathSessionResponse,
    NafathStatusResponse,
)
from app.services.nafath import (
    InvalidInput,
    InvalidOrExpiredSession,
    NafathError,
    NafathService,
    NotConfigured,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_AVAILABLE = "خدمة نفاذ متاحة"
STATUS_UNAVAILABLE = "خدمة نفاذ غير متاحة حالياً. يرجى إدخال البيانات يدوياً."
INITIATED = "جاري التوجيه إلى نفاذ للتحقق من الهوية"
SESSION_NOT_FOUND = "انتهت صلاحية الجلسة أو غير موجودة"
SESSION_LOADED = "تم جلب بيانات نفاذ بنجاح"
SESSION_DELETED = "تم حذف جلسة نفاذ"
PROVIDER_DECLINED = "تم إلغاء التحقق عبر نفاذ أو رفضه. يرجى المحاولة مرة أخرى."

MAX_CODE_LENGTH = 2048
MAX_STATE_LENGTH = 128
MAX_ERROR_LENGTH = 256


def _error_redirect(settings: Settings, message: str) -> RedirectResponse:
    query = urlencode({"nafath_error": message})
    return RedirectResponse(url=f"{settings.app_url}/?{query}", status_code=302)


@router.get("/status", response_model=NafathStatusResponse)
async def nafath_status(nafath: NafathService = Depends(get_nafath_service)):
    """Tell the client whether verification through Nafath can be offered."""
    configured = nafath.is_configured
    return NafathStatusResponse(
        configured=configured,
        message=STATUS_AVAILABLE if configured else STATUS_UNAVAILABLE,
    )


@router.post("/initiate", response_model=InitiateResponse)
@limiter.limit("10/minute")
async def initiate(
    request: Request,
    payload: InitiateRequest,
    nafath: NafathService = Depends(get_nafath_service),
    session: AsyncSession = Depends(get_async_session),
):
    """Start a verification session and return the Nafath authorization URL."""
    try:
        result = await nafath.initiate_auth(session, payload.gender)
    except NotConfigured as exc:
        raise HTTPException(status_code=503, detail=exc.message)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=exc.message)

    return InitiateResponse(
        auth_url=result.auth_url,
        session_token=result.session_token,
        message=INITIATED,
    )


@router.get("/callback")
@limiter.limit("20/minute")
async def callback(
    request: Request,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    nafath: NafathService = Depends(get_nafath_service),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_async_session),
):
    """Handle the redirect back from Nafath and send the browser to the form."""
    if (
        len(code or "") > MAX_CODE_LENGTH
        or len(state or "") > MAX_STATE_LENGTH
        or len(error or "") > MAX_ERROR_LENGTH
    ):
        logger.warning("Nafath callback rejected: oversized query parameter")
        return _error_redirect(settings, InvalidOrExpiredSession.default_message)

    if error:
        logger.warning("Nafath redirected with error=%s", error)
        if state:
            await nafath.discard_pending(session, state)
        return _error_redirect(settings, PROVIDER_DECLINED)

    if not code or not state:
        return _error_redirect(settings, InvalidOrExpiredSession.default_message)

    try:
        result = await nafath.handle_callback(session, code, state)
    except NafathError as exc:
        return _error_redirect(settings, exc.message)

    query = urlencode(
        {
            "gender": result.gender.value,
            "nafath_session": result.session_token,
            "nafath_success": "true",
        }
    )
    return RedirectResponse(url=f"{settings.app_url}/application?{query}", status_code=302)


@router.get("/session/{session_token}", response_model=NafathSessionResponse)
async def read_session(
    session_token: str,
    nafath: NafathService = Depends(get_nafath_service),
    session: AsyncSession = Depends(get_async_session),
):
    """Return the verified identity for a session token."""
    data = await nafath.get_session_data(session, session_token)
    if data is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    return NafathSessionResponse(data=data, message=SESSION_LOADED)


@router.delete("/session/{session_token}", response_model=MessageResponse)
async def delete_session(
    session_token: str,
    nafath: NafathService = Depends(get_nafath_service),
    session: AsyncSession = Depends(get_async_session),
):
    await nafath.cleanup_session(session, session_token)
    return MessageResponse(message=SESSION_DELETED)
