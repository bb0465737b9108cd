from __future__ import annotations

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.core.http import get_http_client
from app.services.nafath import NafathConfig, NafathService


def get_nafath_service(settings: Settings = Depends(get_settings)) -> NafathService:
    """Build the Nafath service from current settings and the shared HTTP client."""
    return NafathService(NafathConfig.from_settings(settings), get_http_client())
