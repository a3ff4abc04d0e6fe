"""Pydantic models for credentials and provider token responses."""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from bopmaps_client.auth.jwt import read_expiry
from bopmaps_client.constants import IdentityDomain
from bopmaps_client.http.envelope import ResponseEnvelope


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TokenPair(BaseModel):
    """Access/refresh credentials held for one identity domain."""

    model_config = ConfigDict(frozen=True)

    domain: IdentityDomain
    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _expiry_is_aware(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def is_expired(self, now: datetime, buffer: timedelta = timedelta(0)) -> bool:
        """True once ``now + buffer`` reaches ``expires_at``; pairs without expiry never expire locally."""
        return self.expires_at is not None and self.expires_at <= now + buffer

    def rotated(self, grant: "TokenGrant", *, now: datetime, default_lifetime_seconds: int | None) -> "TokenPair":
        """Return the pair after a refresh, keeping the current refresh token if the grant has none."""
        renewed = grant.to_pair(self.domain, now=now, default_lifetime_seconds=default_lifetime_seconds)
        if renewed.refresh_token is None:
            renewed = renewed.model_copy(update={"refresh_token": self.refresh_token})
        return renewed


class TokenGrant(BaseModel):
    """Token response from a login, code-exchange or refresh endpoint.

    Accepts OAuth field names (Spotify) as well as SimpleJWT's ``access``/``refresh``.
    """

    access_token: str = Field(min_length=1, validation_alias=AliasChoices("access_token", "access", "token"))
    refresh_token: str | None = Field(default=None, validation_alias=AliasChoices("refresh_token", "refresh"))
    expires_in: int | None = None
    expires_at: datetime | None = None
    token_type: str | None = None
    scope: str | None = None

    @field_validator("refresh_token")
    @classmethod
    def _blank_refresh_is_absent(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("expires_at")
    @classmethod
    def _expiry_is_aware(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @classmethod
    def from_envelope(cls, envelope: ResponseEnvelope) -> "TokenGrant | None":
        """Parse a grant out of a successful envelope, or None if it carries no access token."""
        if not envelope.success or not isinstance(envelope.data, dict):
            return None
        payload: dict[str, Any] = envelope.data
        # Backend music-service callbacks wrap the provider tokens: {"service": {...}}
        if isinstance(payload.get("service"), dict):
            payload = payload["service"]
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None

    def resolve_expiry(self, now: datetime, default_lifetime_seconds: int | None) -> datetime | None:
        """Expiry from the response, else the token's own exp claim, else the configured default."""
        if self.expires_at is not None:
            return self.expires_at
        if self.expires_in is not None:
            return now + timedelta(seconds=self.expires_in)
        claimed = read_expiry(self.access_token)
        if claimed is not None:
            return claimed
        if default_lifetime_seconds:
            return now + timedelta(seconds=default_lifetime_seconds)
        return None

    def to_pair(
        self,
        domain: IdentityDomain,
        *,
        now: datetime,
        default_lifetime_seconds: int | None = None,
    ) -> TokenPair:
        return TokenPair(
            domain=domain,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.resolve_expiry(now, default_lifetime_seconds),
        )
