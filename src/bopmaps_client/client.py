"""Authenticated API client: the single entry point application code uses for backend and provider I/O."""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from types import TracebackType
from typing import Any, Self

from pydantic import BaseModel

from bopmaps_client.auth.providers import AppAccountProvider, IdentityProvider, SpotifyProvider
from bopmaps_client.auth.schemas import TokenGrant
from bopmaps_client.auth.secret_store import SecretStore, build_secret_store
from bopmaps_client.auth.tokens import TokenLifecycleManager
from bopmaps_client.constants import (
    CONNECTION_CHECK_TIMEOUT,
    DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
    DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
    MUSIC_DOMAINS,
    SCHEMA_ENDPOINT,
    IdentityDomain,
)
from bopmaps_client.exceptions import UnsupportedOperationError
from bopmaps_client.http.envelope import ErrorKind, ResponseEnvelope
from bopmaps_client.http.retry import RetryPolicy
from bopmaps_client.http.transport import RetryingTransport
from bopmaps_client.settings import ClientSettings, get_settings

logger = logging.getLogger(__name__)

SessionExpiredCallback = Callable[[], Awaitable[None]]


class ConnectionReport(BaseModel):
    """Result of probing the backend with :meth:`AuthenticatedApiClient.check_connection`."""

    success: bool
    base_url: str
    status_code: int | None = None
    response_time_ms: int
    error: str | None = None


class AuthenticatedApiClient:
    """Issues requests on behalf of the signed-in user across all identity domains.

    Every verb asks the domain's :class:`TokenLifecycleManager` for an access
    token, sends the request through the retry policy, and on a 401 refreshes
    the token and retries exactly once. Failures come back as
    :class:`ResponseEnvelope` values rather than exceptions.

    One instance per process holds one token manager per domain. An
    unrecoverable refresh failure of the app account logs out every domain.
    """

    def __init__(
        self,
        transport: RetryingTransport,
        retry_policy: RetryPolicy,
        providers: Iterable[IdentityProvider],
        store: SecretStore,
        *,
        expiry_buffer_seconds: int = DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
        default_lifetime_seconds: int | None = DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
        clock: Callable[[], datetime] | None = None,
        on_session_expired: SessionExpiredCallback | None = None,
    ) -> None:
        self._transport = transport
        self._retry_policy = retry_policy
        self._providers: dict[IdentityDomain, IdentityProvider] = {p.domain: p for p in providers}
        if IdentityDomain.APP not in self._providers:
            raise ValueError("an app-account provider is required")

        manager_options: dict[str, Any] = {
            "expiry_buffer_seconds": expiry_buffer_seconds,
            "default_lifetime_seconds": default_lifetime_seconds,
            "on_refresh_failed": self._handle_refresh_failure,
        }
        if clock is not None:
            manager_options["clock"] = clock
        self._managers: dict[IdentityDomain, TokenLifecycleManager] = {
            domain: TokenLifecycleManager(provider, store, **manager_options)
            for domain, provider in self._providers.items()
        }
        self._on_session_expired = on_session_expired

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings | None = None,
        *,
        store: SecretStore | None = None,
        on_session_expired: SessionExpiredCallback | None = None,
    ) -> "AuthenticatedApiClient":
        """Wire transport, retry policy, providers and secret store from settings."""
        settings = settings or get_settings()
        transport = RetryingTransport(
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            concurrency_limit=settings.CONCURRENCY_LIMIT,
        )
        retry_policy = RetryPolicy(settings.MAX_RETRIES, settings.INITIAL_RETRY_DELAY_SECONDS)
        providers: list[IdentityProvider] = [
            AppAccountProvider(transport, retry_policy, base_url=settings.API_BASE_URL),
            SpotifyProvider(
                transport,
                retry_policy,
                client_id=settings.SPOTIFY_CLIENT_ID,
                client_secret=settings.SPOTIFY_CLIENT_SECRET,
                redirect_uri=settings.SPOTIFY_REDIRECT_URI,
            ),
        ]
        return cls(
            transport,
            retry_policy,
            providers,
            store if store is not None else build_secret_store(settings),
            expiry_buffer_seconds=settings.TOKEN_EXPIRY_BUFFER_SECONDS,
            default_lifetime_seconds=settings.DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
            on_session_expired=on_session_expired,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._transport.aclose()

    def manager(self, domain: IdentityDomain) -> TokenLifecycleManager:
        try:
            return self._managers[domain]
        except KeyError:
            raise UnsupportedOperationError(domain, "request") from None

    def provider(self, domain: IdentityDomain) -> IdentityProvider:
        try:
            return self._providers[domain]
        except KeyError:
            raise UnsupportedOperationError(domain, "request") from None

    # -------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------

    async def get(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            "GET", path, params=params, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        params: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            "POST", path, params=params, body=body, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        params: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            "PUT", path, params=params, body=body, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def patch(
        self,
        path: str,
        body: Any = None,
        *,
        params: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            "PATCH", path, params=params, body=body, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def delete(
        self,
        path: str,
        body: Any = None,
        *,
        params: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        return await self.request(
            "DELETE", path, params=params, body=body, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def upload(
        self,
        path: str,
        files: Mapping[str, Any],
        data: Mapping[str, str] | None = None,
        *,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        """POST a multipart/form-data body.

        ``files`` maps field names to httpx file values, e.g.
        ``{"image": ("pin.jpg", content, "image/jpeg")}``. Pass the content as
        bytes: a retried or re-authenticated attempt sends the body again, and
        an open file object would already be consumed.
        """
        return await self.request(
            "POST", path, form=data, files=files, domain=domain, requires_auth=requires_auth, timeout=timeout
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        form: Mapping[str, str] | None = None,
        files: Mapping[str, Any] | None = None,
        domain: IdentityDomain = IdentityDomain.APP,
        requires_auth: bool = True,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        """Send a request with the domain's access token, refreshing once on 401.

        Flow:
        1. Get an access token; without one, fail as ``unauthorized`` unless
           the request does not require auth (then it is sent bare)
        2. Send through the retry policy
        3. On 401 for a token we sent, and only the first time: force-expire
           the token, obtain a new one and go back to 2
        4. Return the last envelope
        """
        manager = self.manager(domain)
        url = self._resolve_url(domain, path)

        token = await manager.current_access_token()
        if token is None and requires_auth:
            return ResponseEnvelope.failure(ErrorKind.UNAUTHORIZED, "Authentication required")

        already_refreshed = False
        while True:
            envelope = await self._send(
                method, url, token, params=params, body=body, form=form, files=files, timeout=timeout
            )
            if envelope.error_kind is not ErrorKind.UNAUTHORIZED or token is None or already_refreshed:
                return envelope

            already_refreshed = True
            logger.info(
                "%s %s returned 401, refreshing credentials", method, path, extra={"domain": domain, "status_code": 401}
            )
            manager.force_expire(token)
            token = await manager.current_access_token()
            if token is None:
                return envelope

    async def _send(
        self,
        method: str,
        url: str,
        token: str | None,
        *,
        params: Mapping[str, Any] | None,
        body: Any,
        form: Mapping[str, str] | None,
        files: Mapping[str, Any] | None,
        timeout: float | None,
    ) -> ResponseEnvelope:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        return await self._retry_policy.execute(
            lambda: self._transport.call(
                method,
                url,
                headers=headers,
                params=params,
                json_body=body,
                form=form,
                files=files,
                timeout=timeout,
            )
        )

    def _resolve_url(self, domain: IdentityDomain, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.provider(domain).api_base_url}/{path.lstrip('/')}"

    # -------------------------------------------------------------------
    # Session management
    # -------------------------------------------------------------------

    async def login(self, username: str, password: str) -> ResponseEnvelope:
        """Sign in to the app account and store the returned token pair."""
        envelope = await self._app_provider("login").login(username, password)
        return await self._store_grant(IdentityDomain.APP, envelope, "Login")

    async def register(self, username: str, email: str, password: str) -> ResponseEnvelope:
        """Create an app account; signs in afterwards when the backend returns no tokens."""
        envelope = await self._app_provider("register").register(username, email, password)
        if not envelope.success:
            return envelope
        if TokenGrant.from_envelope(envelope) is not None:
            return await self._store_grant(IdentityDomain.APP, envelope, "Registration")
        return await self.login(username, password)

    async def logout(self) -> None:
        """Revoke (best effort) and clear the credentials of every domain."""
        for domain, manager in self._managers.items():
            pair = await manager.load()
            if pair is not None:
                await self._providers[domain].revoke(pair)
        await self._clear_all()
        logger.info("Logged out of all identity domains")

    async def is_authenticated(self, domain: IdentityDomain = IdentityDomain.APP) -> bool:
        return await self.manager(domain).is_authenticated()

    def authorization_url(self, domain: IdentityDomain, state: str | None = None) -> str:
        """URL the user must visit to authorize ``domain``; the resulting code goes to :meth:`connect`."""
        return self.provider(domain).authorization_url(state)

    async def connect(self, domain: IdentityDomain, code: str, redirect_uri: str | None = None) -> ResponseEnvelope:
        """Exchange an authorization code for the initial token pair of ``domain``."""
        envelope = await self.provider(domain).exchange_code(code, redirect_uri=redirect_uri)
        return await self._store_grant(domain, envelope, "Authorization code exchange")

    async def disconnect(self, domain: IdentityDomain) -> None:
        """Drop the credentials of one domain; disconnecting the app account is a full logout."""
        if domain is IdentityDomain.APP:
            await self.logout()
            return
        manager = self.manager(domain)
        pair = await manager.load()
        if pair is not None:
            await self._providers[domain].revoke(pair)
        await manager.clear()

    async def connected_domains(self) -> list[IdentityDomain]:
        """Music domains that currently hold credentials."""
        return [
            domain
            for domain in MUSIC_DOMAINS
            if domain in self._managers and await self._managers[domain].is_authenticated()
        ]

    async def check_connection(self) -> ConnectionReport:
        """Probe the backend once (no retries, no auth) and time the round trip."""
        base_url = self.provider(IdentityDomain.APP).api_base_url
        started = time.perf_counter()
        envelope = await self._transport.call(
            "GET", f"{base_url}{SCHEMA_ENDPOINT}", timeout=CONNECTION_CHECK_TIMEOUT
        )
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        reachable = envelope.status_code is not None
        return ConnectionReport(
            success=reachable,
            base_url=base_url,
            status_code=envelope.status_code,
            response_time_ms=elapsed_ms,
            error=None if reachable else envelope.message,
        )

    # -------------------------------------------------------------------
    # Private helpers
    # -------------------------------------------------------------------

    def _app_provider(self, operation: str) -> AppAccountProvider:
        provider = self.provider(IdentityDomain.APP)
        if not isinstance(provider, AppAccountProvider):
            raise UnsupportedOperationError(IdentityDomain.APP, operation)
        return provider

    async def _store_grant(self, domain: IdentityDomain, envelope: ResponseEnvelope, action: str) -> ResponseEnvelope:
        if not envelope.success:
            return envelope
        grant = TokenGrant.from_envelope(envelope)
        if grant is None:
            logger.warning("%s response did not include an access token", action, extra={"domain": domain})
            return ResponseEnvelope.failure(
                ErrorKind.PARSE,
                f"{action} response did not include an access token",
                status_code=envelope.status_code,
            )
        await self.manager(domain).establish(grant)
        return envelope

    async def _clear_all(self) -> None:
        for manager in self._managers.values():
            await manager.clear()

    async def _handle_refresh_failure(self, domain: IdentityDomain) -> None:
        if domain is not IdentityDomain.APP:
            return
        logger.warning("App-account session could not be renewed; logging out of every domain")
        await self._clear_all()
        if self._on_session_expired is not None:
            await self._on_session_expired()
