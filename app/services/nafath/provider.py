from __future__ import annotations

import logging
from typing import Any

import httpx
from httpx_oauth.oauth2 import GetAccessTokenError, OAuth2
from pydantic import ValidationError

from app.schemas.nafath import NafathUserData
from app.services.nafath.config import NafathConfig
from app.services.nafath.errors import ProviderError

logger = logging.getLogger(__name__)

# Upper bound on provider response text copied into logs
LOG_BODY_LIMIT = 500


def _truncate(text: str | None, limit: int = LOG_BODY_LIMIT) -> str | None:
    if text is None:
        return None
    return text if len(text) <= limit else text[:limit] + "..."


class NafathOAuth2(OAuth2):
    """OAuth2 client whose token requests honour the app's HTTP timeout."""

    def __init__(self, *args: Any, timeout: httpx.Timeout | float = 10.0, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.timeout = timeout

    def get_httpx_client(self):
        return httpx.AsyncClient(timeout=self.timeout)


class NafathProvider:
    """Talks to the Nafath authorization server and user-info API."""

    def __init__(self, config: NafathConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.http_client = http_client
        self.oauth_client = NafathOAuth2(
            client_id=config.client_id,
            client_secret=config.client_secret,
            authorize_endpoint=config.authorize_endpoint,
            access_token_endpoint=config.token_endpoint,
            timeout=http_client.timeout,
        )

    async def get_authorization_url(self, state: str) -> str:
        return await self.oauth_client.get_authorization_url(
            redirect_uri=self.config.redirect_uri,
            state=state,
            scope=self.config.scope.split(),
        )

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        endpoint = self.config.token_endpoint
        try:
            token = await self.oauth_client.get_access_token(code, self.config.redirect_uri)
        except GetAccessTokenError as exc:
            response = getattr(exc, "response", None)
            raise ProviderError(
                "Token exchange failed",
                endpoint=endpoint,
                status_code=response.status_code if response is not None else None,
                body=_truncate(response.text) if response is not None else str(exc),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Token exchange transport error: {type(exc).__name__}",
                endpoint=endpoint,
            ) from exc

        access_token = token.get("access_token")
        if not access_token:
            raise ProviderError("Token response has no access_token", endpoint=endpoint)
        return access_token

    async def fetch_user_data(self, access_token: str) -> NafathUserData:
        endpoint = self.config.user_endpoint
        try:
            resp = await self.http_client.get(
                endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"User data transport error: {type(exc).__name__}",
                endpoint=endpoint,
            ) from exc

        if resp.status_code != 200:
            raise ProviderError(
                "User data fetch failed",
                endpoint=endpoint,
                status_code=resp.status_code,
                body=_truncate(resp.text),
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderError(
                "User data response is not JSON",
                endpoint=endpoint,
                status_code=resp.status_code,
                body=_truncate(resp.text),
            ) from exc

        if not isinstance(payload, dict):
            raise ProviderError("User data response is not an object", endpoint=endpoint)

        try:
            return NafathUserData(
                national_id=payload.get("national_id"),
                name_ar=payload.get("name_ar"),
                birth_date=payload.get("birth_date"),
                nationality=payload.get("nationality"),
                verified=True,
            )
        except ValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise ProviderError(
                f"User data incomplete: {', '.join(missing)}",
                endpoint=endpoint,
                status_code=resp.status_code,
            ) from exc
