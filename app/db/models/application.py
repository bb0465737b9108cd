from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.nafath_session import Gender


class ApplicationStatus(str, Enum):
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class JobApplication(Base):
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    national_id: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    birth_date: Mapped[str] = mapped_column(String(10), nullable=False)
    gender: Mapped[Gender] = mapped_column(
        SQLEnum(Gender, values_callable=lambda e: [m.value for m in e]), nullable=False
    )
    position: Mapped[str] = mapped_column(String(64), nullable=False)
    qualification: Mapped[str] = mapped_column(String(64), nullable=False)
    specialization: Mapped[str] = mapped_column(Text, nullable=False)
    experience: Mapped[str] = mapped_column(String(32), nullable=False)
    grade_type: Mapped[str] = mapped_column(String(32), nullable=False)
    grade: Mapped[str] = mapped_column(String(32), nullable=False)
    has_professional_license: Mapped[str] = mapped_column(String(8), nullable=False, default="no")

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, values_callable=lambda e: [m.value for m in e]),
        default=ApplicationStatus.UNDER_REVIEW,
        nullable=False,
    )

    nafath_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    nafath_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
