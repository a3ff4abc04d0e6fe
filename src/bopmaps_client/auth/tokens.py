"""Token lifecycle management: persistence, expiry and single-flight refresh per identity domain."""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from bopmaps_client.auth.providers import IdentityProvider
from bopmaps_client.auth.schemas import TokenGrant, TokenPair
from bopmaps_client.auth.secret_store import SecretStore
from bopmaps_client.constants import (
    DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
    DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
    IdentityDomain,
    TokenStorageKeys,
)
from bopmaps_client.exceptions import TokenRefreshError

logger = logging.getLogger(__name__)

RefreshFailedCallback = Callable[[IdentityDomain], Awaitable[None]]


class TokenState(enum.StrEnum):
    """Lifecycle state of one domain's credentials."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    REFRESH_IN_FLIGHT = "refresh_in_flight"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenLifecycleManager:
    """Owns the token pair of one identity domain and hands out usable access tokens.

    The manager is the only writer of its domain's secret-store keys. Expired
    tokens are refreshed through the domain's :class:`IdentityProvider`; at most
    one refresh runs at a time, and every caller that asks for a token while it
    runs awaits that same refresh. The refresh runs in its own task, so a
    caller that gives up waiting does not cancel it for the others.

    A refresh that is rejected (or impossible for lack of a refresh token)
    clears the domain and reports it through ``on_refresh_failed``. A refresh
    that fails transiently leaves the pair in place for the next attempt.
    Clearing or replacing the session detaches a refresh still in flight:
    its result is dropped and later callers do not wait for it.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: SecretStore,
        *,
        expiry_buffer_seconds: int = DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
        default_lifetime_seconds: int | None = DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        on_refresh_failed: RefreshFailedCallback | None = None,
    ) -> None:
        self.domain = provider.domain
        self._provider = provider
        self._store = store
        self._keys = TokenStorageKeys.for_domain(self.domain)
        self._buffer = timedelta(seconds=expiry_buffer_seconds)
        self._default_lifetime = default_lifetime_seconds
        self._clock = clock
        self._on_refresh_failed = on_refresh_failed
        self._log_extra = {"domain": self.domain}

        self._pair: TokenPair | None = None
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._force_expired = False
        self._refresh_task: asyncio.Task[str | None] | None = None
        # Bumped whenever the session is replaced or cleared; a refresh that
        # started under an older generation must not write its result.
        self._generation = 0
        # Held for every multi-key store update so clear, persist and a
        # refresh result never interleave their writes.
        self._write_lock = asyncio.Lock()

    @property
    def storage_keys(self) -> TokenStorageKeys:
        return self._keys

    @property
    def state(self) -> TokenState:
        if self._refresh_task is not None:
            return TokenState.REFRESH_IN_FLIGHT
        if self._pair is None:
            return TokenState.UNAUTHENTICATED
        if self._force_expired or self._pair.is_expired(self._clock(), self._buffer):
            return TokenState.EXPIRED
        return TokenState.AUTHENTICATED

    async def load(self) -> TokenPair | None:
        """Read persisted credentials on first use; later calls return the in-memory pair."""
        if self._loaded:
            return self._pair
        async with self._load_lock:
            if not self._loaded:
                self._pair = await self._read_pair()
                self._loaded = True
                if self._pair is not None:
                    logger.debug("Restored stored credentials", extra=self._log_extra)
        return self._pair

    async def is_authenticated(self) -> bool:
        return await self.load() is not None

    async def current_access_token(self) -> str | None:
        """Return a usable access token, refreshing (or joining a refresh) when needed.

        Returns None when the domain is unauthenticated or the refresh failed.
        """
        await self.load()
        if self._refresh_task is not None:
            return await self.refresh()

        pair = self._pair
        if pair is None:
            return None
        if not self._force_expired and not pair.is_expired(self._clock(), self._buffer):
            return pair.access_token
        return await self.refresh()

    async def refresh(self) -> str | None:
        """Start a refresh, or join the one already in flight, and return its access token."""
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._run_refresh(), name=f"token-refresh-{self.domain}")
            self._refresh_task = task
        return await asyncio.shield(task)

    def force_expire(self, rejected_token: str | None = None) -> bool:
        """Mark the pair expired after the server rejected it.

        When ``rejected_token`` is given and no longer matches the current
        access token, the pair was already replaced and nothing changes.
        Returns whether the pair was marked.
        """
        pair = self._pair
        if pair is None:
            return False
        if rejected_token is not None and rejected_token != pair.access_token:
            return False
        self._force_expired = True
        return True

    async def establish(self, grant: TokenGrant) -> TokenPair:
        """Start a new session from a login, registration or code-exchange grant."""
        pair = grant.to_pair(self.domain, now=self._clock(), default_lifetime_seconds=self._default_lifetime)
        await self.persist(pair)
        logger.info("Stored new credentials", extra=self._log_extra)
        return pair

    async def persist(self, pair: TokenPair) -> None:
        """Replace the session with ``pair`` and write it to the secret store."""
        if pair.domain != self.domain:
            raise ValueError(f"token pair for {pair.domain!r} cannot be stored under {self.domain!r}")
        await self.load()
        async with self._write_lock:
            self._start_new_session()
            await self._write(pair)

    async def clear(self) -> None:
        """Forget the pair and delete every secret-store key of this domain."""
        await self._clear()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _clear(self, expected_generation: int | None = None) -> bool:
        await self.load()
        async with self._write_lock:
            if expected_generation is not None and expected_generation != self._generation:
                return False
            self._start_new_session()
            had_pair = self._pair is not None
            self._pair = None
            self._force_expired = False
            for key in self._keys.all():
                await self._store.delete(key)
        if had_pair:
            logger.info("Cleared stored credentials", extra=self._log_extra)
        return True

    async def _run_refresh(self) -> str | None:
        generation = self._generation
        pair = self._pair
        try:
            if pair is None:
                return None
            if not pair.refresh_token:
                logger.warning("No refresh token stored; session cannot be renewed", extra=self._log_extra)
                await self._give_up(generation)
                return None

            try:
                grant = await self._provider.refresh(pair.refresh_token)
            except TokenRefreshError as exc:
                if exc.transient:
                    logger.warning("Token refresh failed, will retry later: %s", exc.detail, extra=self._log_extra)
                    return None
                logger.warning("Token refresh rejected: %s", exc.detail, extra=self._log_extra)
                await self._give_up(generation)
                return None

            refreshed = pair.rotated(grant, now=self._clock(), default_lifetime_seconds=self._default_lifetime)
            async with self._write_lock:
                if generation != self._generation:
                    logger.info("Discarding refreshed token; session changed during refresh", extra=self._log_extra)
                    return None
                await self._write(refreshed)
            logger.info("Refreshed access token", extra=self._log_extra)
            return refreshed.access_token
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

    def _start_new_session(self) -> None:
        # A refresh still running for the previous session finishes on its
        # own and is discarded; new callers must not join it.
        self._generation += 1
        self._refresh_task = None

    async def _give_up(self, generation: int) -> None:
        if not await self._clear(generation):
            return
        if self._on_refresh_failed is not None:
            await self._on_refresh_failed(self.domain)

    async def _write(self, pair: TokenPair) -> None:
        # Refresh token and expiry go first: the access token key is what marks
        # the domain as authenticated on the next load.
        if pair.refresh_token:
            await self._store.set(self._keys.refresh_token, pair.refresh_token)
        else:
            await self._store.delete(self._keys.refresh_token)
        if pair.expires_at is not None:
            await self._store.set(self._keys.expires_at, pair.expires_at.isoformat())
        else:
            await self._store.delete(self._keys.expires_at)
        await self._store.set(self._keys.access_token, pair.access_token)
        self._pair = pair
        self._force_expired = False

    async def _read_pair(self) -> TokenPair | None:
        access_token = await self._store.get(self._keys.access_token)
        if not access_token:
            return None
        refresh_token = await self._store.get(self._keys.refresh_token)
        raw_expiry = await self._store.get(self._keys.expires_at)

        expires_at: datetime | None = None
        if raw_expiry:
            try:
                expires_at = datetime.fromisoformat(raw_expiry)
            except ValueError:
                logger.warning(
                    "Stored token expiry %r is malformed; treating token as expired",
                    raw_expiry,
                    extra=self._log_extra,
                )
                expires_at = self._clock()

        return TokenPair(
            domain=self.domain,
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_at=expires_at,
        )
