from __future__ import annotations

from app.db.models.application import ApplicationStatus, JobApplication
from app.db.models.nafath_session import Gender, NafathSession

__all__ = [
    "ApplicationStatus",
    "Gender",
    "JobApplication",
    "NafathSession",
]
