from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from app.core.config import Settings


@dataclass(frozen=True)
class NafathConfig:
    base_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scope: str = "profile national_id"
    session_ttl: timedelta = field(default=timedelta(minutes=30))

    @classmethod
    def from_settings(cls, settings: Settings) -> "NafathConfig":
        return cls(
            base_url=settings.nafath_url_base,
            client_id=settings.nafath_client_id,
            client_secret=settings.nafath_client_secret,
            redirect_uri=settings.nafath_redirect_uri,
            scope=settings.nafath_scope,
            session_ttl=timedelta(minutes=settings.nafath_session_ttl_minutes),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.client_id and self.client_secret)

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.base_url}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/oauth/token"

    @property
    def user_endpoint(self) -> str:
        return f"{self.base_url}/api/user"
