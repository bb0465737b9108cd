from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class NafathSession(Base):
    """One Nafath verification attempt, from initiation until consumed or expired."""

    __tablename__ = "nafath_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Handed to the browser; polled to fetch the verified identity
    session_token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    # OAuth anti-forgery value, only ever placed in the authorization URL
    state: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    gender: Mapped[Gender] = mapped_column(
        SQLEnum(Gender, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    oauth_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Fernet-encrypted
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
