"""
Nafath identity verification sessions.

A session is created when the applicant starts verification, completed once
by the OAuth callback, read by the browser while filling the form, and
consumed (deleted) when the application is submitted. Every session expires
``NafathConfig.session_ttl`` after creation whatever its state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

import httpx
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import encrypt_token, generate_secure_token
from app.db.models.nafath_session import Gender, NafathSession
from app.schemas.nafath import NafathIdentity, NafathUserData, parse_birth_date
from app.services.nafath import repository
from app.services.nafath.config import NafathConfig
from app.services.nafath.errors import (
    InvalidInput,
    InvalidOrExpiredSession,
    NotConfigured,
    SessionExpired,
    VerificationFailed,
)
from app.services.nafath.provider import NafathProvider

logger = logging.getLogger(__name__)

STATE_BYTES = 16
SESSION_TOKEN_BYTES = 24


def calculate_age(birth_date: date, today: date) -> int:
    """Whole years between ``birth_date`` and ``today``."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def _mask(token: str) -> str:
    return f"{token[:8]}…"


@dataclass(frozen=True)
class InitiateResult:
    auth_url: str
    session_token: str


@dataclass(frozen=True)
class CallbackResult:
    session_token: str
    gender: Gender


class NafathService:
    """Runs the Nafath authorization-code flow against the session table."""

    def __init__(
        self,
        config: NafathConfig,
        http_client: httpx.AsyncClient,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.config = config
        self.clock = clock
        self.provider = NafathProvider(config, http_client)

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def _is_expired(self, record: NafathSession) -> bool:
        return self.clock() > record.expires_at

    async def initiate_auth(self, session: AsyncSession, gender: str) -> InitiateResult:
        """Create an unverified session and build the Nafath authorization URL."""
        if not self.is_configured:
            raise NotConfigured()

        try:
            subject = Gender(gender)
        except ValueError:
            raise InvalidInput() from None

        state = generate_secure_token(STATE_BYTES)
        session_token = generate_secure_token(SESSION_TOKEN_BYTES)

        await repository.create_session(
            session,
            session_token=session_token,
            state=state,
            gender=subject,
            now=self.clock(),
            ttl=self.config.session_ttl,
        )
        auth_url = await self.provider.get_authorization_url(state)

        logger.info("Nafath session %s initiated (gender=%s)", _mask(session_token), subject.value)
        return InitiateResult(auth_url=auth_url, session_token=session_token)

    async def handle_callback(self, session: AsyncSession, code: str, state: str) -> CallbackResult:
        """
        Complete the session bound to ``state``.

        Any failure after the session is found deletes it, so a session is
        either fully verified or gone.
        """
        record = await repository.get_unverified_by_state(session, state)
        if record is None:
            raise InvalidOrExpiredSession()

        session_token = record.session_token
        gender = record.gender

        if self._is_expired(record):
            await repository.delete_by_token(session, session_token)
            logger.info("Nafath session %s expired before callback", _mask(session_token))
            raise SessionExpired()

        try:
            access_token = await self.provider.exchange_code(code)
            user_data = await self.provider.fetch_user_data(access_token)
        except Exception as exc:
            logger.error("Nafath verification failed for session %s: %s", _mask(session_token), exc)
            await repository.delete_by_token(session, session_token)
            raise VerificationFailed() from exc

        updated = await repository.mark_verified(
            session,
            session_token,
            oauth_code=code,
            access_token=encrypt_token(access_token),
            user_data=user_data.model_dump(),
        )
        if not updated:
            logger.warning("Nafath session %s was completed or removed concurrently", _mask(session_token))
            raise InvalidOrExpiredSession()

        logger.info("Nafath session %s verified", _mask(session_token))
        return CallbackResult(session_token=session_token, gender=gender)

    async def discard_pending(self, session: AsyncSession, state: str) -> None:
        """Drop the in-flight session for ``state`` after the provider reported an error."""
        deleted = await repository.delete_by_state(session, state)
        if deleted:
            logger.info("Discarded pending Nafath session after provider error")

    async def get_session_data(self, session: AsyncSession, session_token: str) -> NafathIdentity | None:
        record = await repository.get_verified_by_token(session, session_token)
        if record is None or record.user_data is None:
            return None

        if self._is_expired(record):
            await repository.delete_by_token(session, session_token)
            return None

        try:
            user_data = NafathUserData.model_validate(record.user_data)
        except ValidationError:
            logger.exception("Stored Nafath data for session %s is invalid", _mask(session_token))
            await repository.delete_by_token(session, session_token)
            return None

        return self._process_user_data(user_data, session_token)

    async def consume_session(self, session: AsyncSession, session_token: str) -> NafathIdentity | None:
        """
        Read the verified identity and delete the session without committing.

        The caller commits the delete together with whatever it stores, so the
        identity can back exactly one submission.
        """
        identity = await self.get_session_data(session, session_token)
        if identity is None:
            return None

        deleted = await repository.delete_by_token(session, session_token, commit=False)
        if deleted != 1:
            return None
        return identity

    async def cleanup_session(self, session: AsyncSession, session_token: str) -> None:
        await repository.delete_by_token(session, session_token)

    async def cleanup_expired_sessions(self, session: AsyncSession) -> int:
        return await repository.delete_expired(session, now=self.clock())

    async def validate_session(self, session: AsyncSession, session_token: str) -> bool:
        record = await repository.get_by_token(session, session_token)
        if record is None:
            return False

        if self._is_expired(record):
            await repository.delete_by_token(session, session_token)
            return False

        return True

    def _process_user_data(self, user_data: NafathUserData, transaction_id: str) -> NafathIdentity:
        birth = parse_birth_date(user_data.birth_date)
        return NafathIdentity(
            full_name=user_data.name_ar.strip(),
            national_id=user_data.national_id,
            birth_date=birth.isoformat(),
            age=calculate_age(birth, self.clock().date()),
            verified=user_data.verified,
            transaction_id=transaction_id,
        )
