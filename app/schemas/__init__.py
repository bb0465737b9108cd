from __future__ import annotations

from app.schemas.application import ApplicationCreate, ApplicationResponse
from app.schemas.nafath import (
    InitiateRequest,
    InitiateResponse,
    MessageResponse,
    NafathIdentity,
    NafathSessionResponse,
    NafathStatusResponse,
    NafathUserData,
)

__all__ = [
    "ApplicationCreate",
    "ApplicationResponse",
    "InitiateRequest",
    "InitiateResponse",
    "MessageResponse",
    "NafathIdentity",
    "NafathSessionResponse",
    "NafathStatusResponse",
    "NafathUserData",
]
