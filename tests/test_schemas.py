"""Tests for token models and JWT expiry inspection."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from pydantic import ValidationError

from bopmaps_client.auth.jwt import read_expiry
from bopmaps_client.auth.schemas import TokenGrant, TokenPair
from bopmaps_client.constants import IdentityDomain
from bopmaps_client.http.envelope import ErrorKind, ResponseEnvelope

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"


def _jwt(exp: datetime) -> str:
    return jwt.encode({"user_id": 1, "exp": int(exp.timestamp())}, SIGNING_KEY, algorithm="HS256")


def test_grant_accepts_simplejwt_names() -> None:
    """Backend ``access``/``refresh`` fields map onto the grant."""
    grant = TokenGrant.model_validate({"access": "a1", "refresh": "r1"})
    assert grant.access_token == "a1"
    assert grant.refresh_token == "r1"


def test_grant_accepts_oauth_names() -> None:
    """Spotify-style fields map onto the grant."""
    grant = TokenGrant.model_validate(
        {"access_token": "a1", "token_type": "Bearer", "expires_in": 3600, "scope": "streaming"}
    )
    assert grant.access_token == "a1"
    assert grant.refresh_token is None
    assert grant.expires_in == 3600


def test_grant_blank_refresh_is_absent() -> None:
    """An empty refresh token counts as not returned."""
    assert TokenGrant.model_validate({"access_token": "a1", "refresh_token": ""}).refresh_token is None


def test_grant_from_envelope_unwraps_service() -> None:
    """Backend callback responses nest tokens under ``service``."""
    envelope = ResponseEnvelope.ok(200, {"service": {"access_token": "sp1", "refresh_token": "spr1"}})
    grant = TokenGrant.from_envelope(envelope)
    assert grant is not None
    assert grant.access_token == "sp1"


def test_grant_from_envelope_without_token() -> None:
    """Bodies without an access token, and failures, produce no grant."""
    assert TokenGrant.from_envelope(ResponseEnvelope.ok(201, {"id": 5, "username": "u"})) is None
    assert TokenGrant.from_envelope(ResponseEnvelope.ok(204)) is None
    assert TokenGrant.from_envelope(ResponseEnvelope.failure(ErrorKind.CLIENT_ERROR, status_code=400)) is None


def test_expiry_from_expires_in() -> None:
    """expires_in is relative to the clock."""
    grant = TokenGrant(access_token="opaque", expires_in=120)
    assert grant.resolve_expiry(NOW, 3600) == NOW + timedelta(seconds=120)


def test_expiry_from_jwt_claim() -> None:
    """Without expires_in, the JWT exp claim is used."""
    exp = NOW + timedelta(minutes=5)
    grant = TokenGrant(access_token=_jwt(exp))
    assert grant.resolve_expiry(NOW, 3600) == exp


def test_expiry_falls_back_to_default_lifetime() -> None:
    """Opaque tokens without expires_in get the default lifetime, or none."""
    grant = TokenGrant(access_token="opaque")
    assert grant.resolve_expiry(NOW, 3600) == NOW + timedelta(hours=1)
    assert grant.resolve_expiry(NOW, None) is None


def test_read_expiry() -> None:
    """read_expiry returns an aware datetime, or None for non-JWTs."""
    exp = NOW + timedelta(hours=2)
    assert read_expiry(_jwt(exp)) == exp
    assert read_expiry("not-a-jwt") is None
    assert read_expiry(jwt.encode({"sub": "1"}, SIGNING_KEY, algorithm="HS256")) is None


def test_pair_is_expired_with_buffer() -> None:
    """A pair counts as expired once within the buffer of its expiry."""
    pair = TokenPair(domain=IdentityDomain.APP, access_token="a1", expires_at=NOW + timedelta(seconds=30))
    assert not pair.is_expired(NOW)
    assert pair.is_expired(NOW, timedelta(seconds=60))
    assert not TokenPair(domain=IdentityDomain.APP, access_token="a1").is_expired(NOW, timedelta(days=1))


def test_pair_naive_expiry_is_utc() -> None:
    """Naive expiry timestamps are interpreted as UTC."""
    pair = TokenPair(domain=IdentityDomain.APP, access_token="a1", expires_at=datetime(2024, 6, 1, 13, 0))
    assert pair.expires_at == datetime(2024, 6, 1, 13, 0, tzinfo=UTC)


def test_pair_requires_access_token() -> None:
    """An empty access token is not a valid pair."""
    with pytest.raises(ValidationError):
        TokenPair(domain=IdentityDomain.APP, access_token="")


def test_rotation_keeps_refresh_token_when_omitted() -> None:
    """A refresh response without a refresh token keeps the stored one."""
    pair = TokenPair(domain=IdentityDomain.SPOTIFY, access_token="a1", refresh_token="r1")
    rotated = pair.rotated(TokenGrant(access_token="a2", expires_in=3600), now=NOW, default_lifetime_seconds=None)
    assert rotated.access_token == "a2"
    assert rotated.refresh_token == "r1"
    assert rotated.expires_at == NOW + timedelta(hours=1)


def test_rotation_adopts_new_refresh_token() -> None:
    """A rotated refresh token replaces the old one."""
    pair = TokenPair(domain=IdentityDomain.APP, access_token="a1", refresh_token="r1")
    rotated = pair.rotated(TokenGrant(access_token="a2", refresh_token="r2"), now=NOW, default_lifetime_seconds=60)
    assert rotated.refresh_token == "r2"
