"""Identity providers: the login, code-exchange, refresh and revoke endpoints of each domain."""

import abc
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from bopmaps_client.auth.schemas import TokenGrant, TokenPair
from bopmaps_client.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_SPOTIFY_REDIRECT_URI,
    LOGOUT_ENDPOINT,
    REGISTER_ENDPOINT,
    SPOTIFY_API_BASE,
    SPOTIFY_AUTHORIZE_URL,
    SPOTIFY_SCOPES,
    SPOTIFY_TOKEN_URL,
    TOKEN_ENDPOINT,
    TOKEN_REFRESH_ENDPOINT,
    IdentityDomain,
)
from bopmaps_client.exceptions import TokenRefreshError, UnsupportedOperationError
from bopmaps_client.http.envelope import ErrorKind, ResponseEnvelope
from bopmaps_client.http.retry import RetryPolicy
from bopmaps_client.http.transport import RetryingTransport

logger = logging.getLogger(__name__)

# Refresh outcomes that mean the refresh token itself is unusable.
TERMINAL_REFRESH_ERRORS = frozenset({ErrorKind.CLIENT_ERROR, ErrorKind.UNAUTHORIZED, ErrorKind.PARSE})


class IdentityProvider(abc.ABC):
    """Base class for one identity domain's endpoints.

    Calls go through the shared transport and retry policy, so transient
    failures of a refresh are retried like any other request.
    """

    domain: IdentityDomain

    def __init__(self, transport: RetryingTransport, retry_policy: RetryPolicy, *, api_base_url: str) -> None:
        self._transport = transport
        self._retry_policy = retry_policy
        self.api_base_url = api_base_url.rstrip("/")

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
        form: Mapping[str, str] | None = None,
    ) -> ResponseEnvelope:
        return await self._retry_policy.execute(
            lambda: self._transport.call(method, url, headers=headers, json_body=json_body, form=form)
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new grant.

        Raises:
            TokenRefreshError: ``transient`` is set when the failure was not a
                rejection of the refresh token (network, timeout, 5xx).
        """
        envelope = await self._send_refresh(refresh_token)
        if not envelope.success:
            raise TokenRefreshError(
                self.domain,
                f"{envelope.error_kind} ({envelope.status_code}): {envelope.message}",
                transient=envelope.error_kind not in TERMINAL_REFRESH_ERRORS,
            )
        grant = TokenGrant.from_envelope(envelope)
        if grant is None:
            raise TokenRefreshError(self.domain, "refresh response did not include an access token")
        return grant

    @abc.abstractmethod
    async def _send_refresh(self, refresh_token: str) -> ResponseEnvelope:
        """Call the domain's refresh endpoint."""

    async def exchange_code(self, code: str, redirect_uri: str | None = None) -> ResponseEnvelope:
        """Exchange an authorization artifact for an initial grant."""
        raise UnsupportedOperationError(self.domain, "exchange_code")

    def authorization_url(self, state: str | None = None) -> str:
        raise UnsupportedOperationError(self.domain, "authorization_url")

    async def revoke(self, pair: TokenPair) -> bool:
        """Best-effort server-side logout. Never raises; returns whether the server acknowledged."""
        return True


class AppAccountProvider(IdentityProvider):
    """The BOPMaps backend account (SimpleJWT-style token endpoints)."""

    domain = IdentityDomain.APP

    def __init__(
        self,
        transport: RetryingTransport,
        retry_policy: RetryPolicy,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
    ) -> None:
        super().__init__(transport, retry_policy, api_base_url=base_url)

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}{path}"

    async def login(self, username: str, password: str) -> ResponseEnvelope:
        """POST /users/auth/token/."""
        return await self._send(
            "POST",
            self._url(TOKEN_ENDPOINT),
            json_body={"username": username, "password": password},
        )

    async def register(self, username: str, email: str, password: str) -> ResponseEnvelope:
        """POST /auth/register."""
        return await self._send(
            "POST",
            self._url(REGISTER_ENDPOINT),
            json_body={"username": username, "email": email, "password": password},
        )

    async def _send_refresh(self, refresh_token: str) -> ResponseEnvelope:
        """POST /users/auth/token/refresh/."""
        return await self._send("POST", self._url(TOKEN_REFRESH_ENDPOINT), json_body={"refresh": refresh_token})

    async def revoke(self, pair: TokenPair) -> bool:
        """POST /users/auth/logout/ once, without retries; failure never blocks local logout."""
        body = {"refresh": pair.refresh_token} if pair.refresh_token else None
        envelope = await self._transport.call(
            "POST",
            self._url(LOGOUT_ENDPOINT),
            headers={"Authorization": f"Bearer {pair.access_token}"},
            json_body=body,
        )
        if not envelope.success:
            logger.warning(
                "Backend logout failed (%s), continuing with local logout",
                envelope.error_kind,
                extra={"domain": self.domain},
            )
        return envelope.success


class SpotifyProvider(IdentityProvider):
    """Spotify accounts service (authorization-code and refresh-token grants)."""

    domain = IdentityDomain.SPOTIFY

    def __init__(
        self,
        transport: RetryingTransport,
        retry_policy: RetryPolicy,
        *,
        client_id: str,
        client_secret: str = "",
        redirect_uri: str = DEFAULT_SPOTIFY_REDIRECT_URI,
        api_base_url: str = SPOTIFY_API_BASE,
    ) -> None:
        super().__init__(transport, retry_policy, api_base_url=api_base_url)
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    def _client_credentials(self) -> dict[str, str]:
        credentials = {"client_id": self._client_id}
        if self._client_secret:
            credentials["client_secret"] = self._client_secret
        return credentials

    def authorization_url(self, state: str | None = None) -> str:
        """Build the Spotify authorize redirect URL."""
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "scope": SPOTIFY_SCOPES,
        }
        if state:
            params["state"] = state
        return f"{SPOTIFY_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str | None = None) -> ResponseEnvelope:
        """POST /api/token with grant_type=authorization_code."""
        return await self._send(
            "POST",
            SPOTIFY_TOKEN_URL,
            form={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri or self._redirect_uri,
                **self._client_credentials(),
            },
        )

    async def _send_refresh(self, refresh_token: str) -> ResponseEnvelope:
        """POST /api/token with grant_type=refresh_token."""
        return await self._send(
            "POST",
            SPOTIFY_TOKEN_URL,
            form={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                **self._client_credentials(),
            },
        )

    async def revoke(self, pair: TokenPair) -> bool:
        # Spotify offers no token revocation endpoint; access ends when tokens are discarded.
        logger.debug("Spotify has no revoke endpoint; dropping tokens locally", extra={"domain": self.domain})
        return True
