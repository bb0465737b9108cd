from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.db.models.application import ApplicationStatus
from app.db.models.nafath_session import Gender
from app.schemas.nafath import CamelModel


class ApplicationCreate(CamelModel):
    full_name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=9, max_length=32)
    national_id: str = Field(pattern=r"^\d{10}$")
    city: str = Field(min_length=1, max_length=100)
    birth_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    gender: Gender
    position: str = Field(min_length=1, max_length=64)
    qualification: str = Field(min_length=1, max_length=64)
    specialization: str = Field(min_length=1, max_length=200)
    experience: str = Field(min_length=1, max_length=32)
    grade_type: str = Field(min_length=1, max_length=32)
    grade: str = Field(min_length=1, max_length=32)
    has_professional_license: str = Field(default="no", pattern=r"^(yes|no)$")

    # Token of a verified Nafath session; its identity fields win over the form's
    nafath_session: str | None = Field(default=None, max_length=64)


class ApplicationResponse(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int
    full_name: str
    phone: str
    national_id: str
    city: str
    birth_date: str
    gender: Gender
    position: str
    qualification: str
    specialization: str
    experience: str
    grade_type: str
    grade: str
    has_professional_license: str
    status: ApplicationStatus
    nafath_verified: bool
    nafath_transaction_id: str | None
    submitted_at: datetime
