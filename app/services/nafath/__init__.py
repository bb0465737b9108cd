from __future__ import annotations

from app.services.nafath.config import NafathConfig
from app.services.nafath.errors import (
    InvalidInput,
    InvalidOrExpiredSession,
    NafathError,
    NotConfigured,
    ProviderError,
    SessionExpired,
    VerificationFailed,
)
from app.services.nafath.service import (
    CallbackResult,
    InitiateResult,
    NafathService,
    calculate_age,
)

__all__ = [
    "CallbackResult",
    "InitiateResult",
    "InvalidInput",
    "InvalidOrExpiredSession",
    "NafathConfig",
    "NafathError",
    "NafathService",
    "NotConfigured",
    "ProviderError",
    "SessionExpired",
    "VerificationFailed",
    "calculate_age",
]
