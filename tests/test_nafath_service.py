from __future__ import annotations

from datetime import date, datetime, timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import func, select

from app.core.security import decrypt_token
from app.db.models.nafath_session import Gender, NafathSession
from app.services.nafath import (
    InvalidInput,
    InvalidOrExpiredSession,
    NafathConfig,
    NafathService,
    NotConfigured,
    SessionExpired,
    VerificationFailed,
    calculate_age,
)
from app.services.nafath import repository


async def _count_sessions(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(NafathSession))
    return result.scalar_one()


async def _stored(db_session, session_token: str) -> NafathSession | None:
    return await repository.get_by_token(db_session, session_token)


async def _seed_verified(db_session, clock, *, token="tok-verified", state="state-verified", user_data=None):
    await repository.create_session(
        db_session,
        session_token=token,
        state=state,
        gender=Gender.FEMALE,
        now=clock(),
        ttl=timedelta(minutes=30),
    )
    await repository.mark_verified(
        db_session,
        token,
        oauth_code="code",
        access_token="encrypted",
        user_data=user_data
        or {
            "national_id": "1098765432",
            "name_ar": "نورة سعد",
            "birth_date": "1990-01-20",
            "nationality": "saudi",
            "verified": True,
        },
    )


def test_calculate_age_boundaries():
    birth = date(2000, 6, 15)
    assert calculate_age(birth, date(2025, 6, 14)) == 24
    assert calculate_age(birth, date(2025, 6, 15)) == 25
    assert calculate_age(birth, date(2025, 6, 16)) == 25
    assert calculate_age(birth, date(2025, 5, 31)) == 24


def test_config_requires_all_three_secrets(nafath_config):
    assert nafath_config.is_configured is True
    for missing in ("base_url", "client_id", "client_secret"):
        values = {
            "base_url": nafath_config.base_url,
            "client_id": nafath_config.client_id,
            "client_secret": nafath_config.client_secret,
            "redirect_uri": nafath_config.redirect_uri,
        }
        values[missing] = ""
        assert NafathConfig(**values).is_configured is False


@pytest.mark.asyncio
async def test_initiate_persists_state_used_in_auth_url(nafath_service, db_session, clock):
    result = await nafath_service.initiate_auth(db_session, "male")

    record = await _stored(db_session, result.session_token)
    assert record is not None
    assert record.verified is False
    assert record.gender == Gender.MALE
    assert record.created_at == clock()
    assert record.expires_at - record.created_at == timedelta(minutes=30)

    parsed = urlparse(result.auth_url)
    params = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://nafath.test/oauth/authorize"
    assert params["state"] == [record.state]
    assert params["client_id"] == ["client-id"]
    assert params["redirect_uri"] == ["http://testserver/api/nafath/callback"]
    assert params["response_type"] == ["code"]
    assert params["scope"] == ["profile national_id"]
    assert record.state != record.session_token


@pytest.mark.asyncio
async def test_initiate_generates_unique_tokens(nafath_service, db_session):
    first = await nafath_service.initiate_auth(db_session, "male")
    second = await nafath_service.initiate_auth(db_session, "female")

    assert first.session_token != second.session_token
    first_row = await _stored(db_session, first.session_token)
    second_row = await _stored(db_session, second.session_token)
    assert first_row.state != second_row.state


@pytest.mark.asyncio
async def test_initiate_not_configured_creates_nothing(http_client, db_session, clock):
    service = NafathService(
        NafathConfig(base_url="", client_id="id", client_secret="secret", redirect_uri="http://x/cb"),
        http_client,
        clock=clock,
    )

    with pytest.raises(NotConfigured):
        await service.initiate_auth(db_session, "male")
    assert await _count_sessions(db_session) == 0


@pytest.mark.asyncio
async def test_initiate_rejects_unknown_gender(nafath_service, db_session):
    with pytest.raises(InvalidInput):
        await nafath_service.initiate_auth(db_session, "other")
    assert await _count_sessions(db_session) == 0


@pytest.mark.asyncio
async def test_callback_unknown_state(nafath_service, db_session):
    await nafath_service.initiate_auth(db_session, "male")

    with pytest.raises(InvalidOrExpiredSession):
        await nafath_service.handle_callback(db_session, "code", "no-such-state")

    assert await _count_sessions(db_session) == 1
    result = await db_session.execute(select(NafathSession))
    assert all(not row.verified for row in result.scalars().all())


@pytest.mark.asyncio
async def test_callback_after_expiry_deletes_session(nafath_service, db_session, clock, nafath_api):
    result = await nafath_service.initiate_auth(db_session, "male")
    state = (await _stored(db_session, result.session_token)).state
    clock.advance(minutes=30, seconds=1)

    with pytest.raises(SessionExpired):
        await nafath_service.handle_callback(db_session, "code", state)

    assert await _stored(db_session, result.session_token) is None
    assert not nafath_api.calls


@pytest.mark.asyncio
async def test_callback_success_verifies_once(nafath_service, db_session, mock_provider):
    token_route, user_route = mock_provider(access_token="access-xyz")
    started = await nafath_service.initiate_auth(db_session, "female")
    state = (await _stored(db_session, started.session_token)).state

    outcome = await nafath_service.handle_callback(db_session, "auth-code", state)

    assert outcome.session_token == started.session_token
    assert outcome.gender == Gender.FEMALE

    form = parse_qs(token_route.calls.last.request.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["auth-code"]
    assert form["redirect_uri"] == ["http://testserver/api/nafath/callback"]
    assert form["client_id"] == ["client-id"]
    assert form["client_secret"] == ["client-secret"]
    assert user_route.calls.last.request.headers["Authorization"] == "Bearer access-xyz"

    record = await _stored(db_session, started.session_token)
    assert record.verified is True
    assert record.oauth_code == "auth-code"
    assert decrypt_token(record.access_token) == "access-xyz"
    assert record.user_data["national_id"] == "1012345678"

    with pytest.raises(InvalidOrExpiredSession):
        await nafath_service.handle_callback(db_session, "auth-code", state)


@pytest.mark.asyncio
async def test_round_trip_reproduces_provider_identity(nafath_service, db_session, mock_provider):
    mock_provider(
        user={
            "national_id": "1122334455",
            "name_ar": "فاطمة علي",
            "birth_date": "2000-06-15",
            "nationality": "saudi",
        }
    )
    started = await nafath_service.initiate_auth(db_session, "female")
    state = (await _stored(db_session, started.session_token)).state
    await nafath_service.handle_callback(db_session, "code", state)

    identity = await nafath_service.get_session_data(db_session, started.session_token)

    assert identity is not None
    assert identity.full_name == "فاطمة علي"
    assert identity.national_id == "1122334455"
    assert identity.birth_date == "2000-06-15"
    assert identity.age == 24  # clock is 2025-06-14
    assert identity.verified is True
    assert identity.transaction_id == started.session_token


@pytest.mark.asyncio
async def test_age_is_derived_at_read_time(nafath_service, db_session, clock, mock_provider):
    mock_provider()
    clock.now = datetime(2025, 6, 14, 23, 50, 0)
    started = await nafath_service.initiate_auth(db_session, "male")
    state = (await _stored(db_session, started.session_token)).state
    await nafath_service.handle_callback(db_session, "code", state)

    assert (await nafath_service.get_session_data(db_session, started.session_token)).age == 24

    clock.now = datetime(2025, 6, 15, 0, 5, 0)
    assert (await nafath_service.get_session_data(db_session, started.session_token)).age == 25


@pytest.mark.asyncio
async def test_token_endpoint_failure_discards_session(nafath_service, db_session, nafath_api):
    nafath_api.post("/oauth/token").mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
    user_route = nafath_api.get("/api/user").mock(return_value=httpx.Response(200, json={}))
    started = await nafath_service.initiate_auth(db_session, "male")
    state = (await _stored(db_session, started.session_token)).state

    with pytest.raises(VerificationFailed) as excinfo:
        await nafath_service.handle_callback(db_session, "code", state)

    assert "invalid_grant" not in excinfo.value.message
    assert not user_route.called
    assert await _stored(db_session, started.session_token) is None
    assert await nafath_service.get_session_data(db_session, started.session_token) is None


@pytest.mark.asyncio
async def test_incomplete_user_data_discards_session(nafath_service, db_session, mock_provider):
    mock_provider(user={"national_id": "1012345678", "birth_date": "2000-06-15"})
    started = await nafath_service.initiate_auth(db_session, "male")
    state = (await _stored(db_session, started.session_token)).state

    with pytest.raises(VerificationFailed):
        await nafath_service.handle_callback(db_session, "code", state)

    assert await _stored(db_session, started.session_token) is None


@pytest.mark.asyncio
async def test_future_birth_date_fails_verification(nafath_service, db_session, mock_provider):
    mock_provider(
        user={"national_id": "1012345678", "name_ar": "سارة", "birth_date": "2999-01-01"}
    )
    started = await nafath_service.initiate_auth(db_session, "female")
    state = (await _stored(db_session, started.session_token)).state

    with pytest.raises(VerificationFailed):
        await nafath_service.handle_callback(db_session, "code", state)

    assert await _stored(db_session, started.session_token) is None


@pytest.mark.asyncio
async def test_user_endpoint_timeout_discards_session(nafath_service, db_session, nafath_api):
    nafath_api.post("/oauth/token").mock(
        return_value=httpx.Response(200, json={"access_token": "a", "token_type": "Bearer"})
    )
    nafath_api.get("/api/user").mock(side_effect=httpx.ReadTimeout("timed out"))
    started = await nafath_service.initiate_auth(db_session, "male")
    state = (await _stored(db_session, started.session_token)).state

    with pytest.raises(VerificationFailed):
        await nafath_service.handle_callback(db_session, "code", state)

    assert await _stored(db_session, started.session_token) is None


@pytest.mark.asyncio
async def test_unverified_session_is_invisible(nafath_service, db_session):
    started = await nafath_service.initiate_auth(db_session, "male")

    assert await nafath_service.get_session_data(db_session, started.session_token) is None
    assert await _stored(db_session, started.session_token) is not None


@pytest.mark.asyncio
async def test_expired_verified_session_is_deleted_on_read(nafath_service, db_session, clock):
    await _seed_verified(db_session, clock)
    clock.advance(minutes=31)

    assert await nafath_service.get_session_data(db_session, "tok-verified") is None
    assert await _stored(db_session, "tok-verified") is None


@pytest.mark.asyncio
async def test_corrupt_stored_identity_is_discarded(nafath_service, db_session, clock):
    await _seed_verified(db_session, clock, user_data={"national_id": "1", "birth_date": "not-a-date"})

    assert await nafath_service.get_session_data(db_session, "tok-verified") is None
    assert await _stored(db_session, "tok-verified") is None


@pytest.mark.asyncio
async def test_verified_session_can_be_read_repeatedly(nafath_service, db_session, clock):
    await _seed_verified(db_session, clock)

    first = await nafath_service.get_session_data(db_session, "tok-verified")
    second = await nafath_service.get_session_data(db_session, "tok-verified")

    assert first == second
    assert first.age == 35


@pytest.mark.asyncio
async def test_consume_session_removes_it(nafath_service, db_session, clock):
    await _seed_verified(db_session, clock)

    identity = await nafath_service.consume_session(db_session, "tok-verified")
    await db_session.commit()

    assert identity.national_id == "1098765432"
    assert await _stored(db_session, "tok-verified") is None
    assert await nafath_service.consume_session(db_session, "tok-verified") is None


@pytest.mark.asyncio
async def test_cleanup_session_is_idempotent(nafath_service, db_session):
    started = await nafath_service.initiate_auth(db_session, "male")

    await nafath_service.cleanup_session(db_session, started.session_token)
    await nafath_service.cleanup_session(db_session, started.session_token)
    await nafath_service.cleanup_session(db_session, "never-existed")

    assert await _count_sessions(db_session) == 0


@pytest.mark.asyncio
async def test_sweep_uses_strict_expiry(nafath_service, db_session, clock):
    now = clock()
    for token, expires_at in (
        ("past", now - timedelta(seconds=1)),
        ("boundary", now),
        ("future", now + timedelta(hours=1)),
    ):
        db_session.add(
            NafathSession(
                session_token=token,
                state=f"state-{token}",
                gender=Gender.MALE,
                verified=token == "future",
                created_at=expires_at - timedelta(minutes=30),
                expires_at=expires_at,
            )
        )
    await db_session.commit()

    deleted = await nafath_service.cleanup_expired_sessions(db_session)

    assert deleted == 1
    assert await _stored(db_session, "past") is None
    assert await _stored(db_session, "boundary") is not None
    assert await _stored(db_session, "future") is not None


@pytest.mark.asyncio
async def test_validate_session(nafath_service, db_session, clock):
    started = await nafath_service.initiate_auth(db_session, "male")

    assert await nafath_service.validate_session(db_session, started.session_token) is True
    assert await nafath_service.validate_session(db_session, "missing") is False

    clock.advance(minutes=30, seconds=1)
    assert await nafath_service.validate_session(db_session, started.session_token) is False
    assert await _stored(db_session, started.session_token) is None


@pytest.mark.asyncio
async def test_discard_pending_only_touches_unverified(nafath_service, db_session, clock):
    await _seed_verified(db_session, clock)
    started = await nafath_service.initiate_auth(db_session, "male")
    pending_state = (await _stored(db_session, started.session_token)).state

    await nafath_service.discard_pending(db_session, "state-verified")
    await nafath_service.discard_pending(db_session, pending_state)

    assert await _stored(db_session, "tok-verified") is not None
    assert await _stored(db_session, started.session_token) is None
