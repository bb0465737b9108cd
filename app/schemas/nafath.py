from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NafathUserData(BaseModel):
    """Identity payload as returned by the Nafath user-info endpoint."""

    model_config = ConfigDict(coerce_numbers_to_str=True, str_strip_whitespace=True)

    national_id: str = Field(min_length=1)
    name_ar: str = Field(min_length=1)
    birth_date: str = Field(min_length=1)
    nationality: str = "saudi"
    verified: bool = True

    @field_validator("birth_date")
    @classmethod
    def _validate_birth_date(cls, value: str) -> str:
        if parse_birth_date(value) > datetime.utcnow().date():
            raise ValueError("birth_date is in the future")
        return value

    @field_validator("nationality", mode="before")
    @classmethod
    def _default_nationality(cls, value):
        return value or "saudi"


def parse_birth_date(value: str) -> date:
    # Providers send either a plain date or a full ISO timestamp.
    return date.fromisoformat(value.strip()[:10])


class NafathIdentity(CamelModel):
    full_name: str
    national_id: str
    birth_date: str
    age: int
    verified: bool
    transaction_id: str


class NafathStatusResponse(CamelModel):
    configured: bool
    message: str


class InitiateRequest(CamelModel):
    gender: str = ""

    @field_validator("gender", mode="before")
    @classmethod
    def _gender_as_text(cls, value):
        # Anything that is not text is rejected by the service as an unknown gender
        return value if isinstance(value, str) else ""


class InitiateResponse(CamelModel):
    auth_url: str
    session_token: str
    message: str


class NafathSessionResponse(CamelModel):
    data: NafathIdentity
    message: str


class MessageResponse(CamelModel):
    message: str
