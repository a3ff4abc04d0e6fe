"""Shared fixtures for client tests."""

from datetime import UTC, datetime

import pytest

from bopmaps_client.auth.providers import AppAccountProvider, SpotifyProvider
from bopmaps_client.auth.secret_store import MemorySecretStore
from bopmaps_client.client import AuthenticatedApiClient
from bopmaps_client.http.retry import RetryPolicy
from bopmaps_client.http.transport import RetryingTransport

API_BASE = "https://api.test"
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FixedClock:
    """Controllable clock; tests move ``now`` forward explicitly."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def retry_policy(sleep: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(max_retries=3, initial_delay=1.0, sleep=sleep)


@pytest.fixture
async def transport():  # type: ignore[no-untyped-def]
    transport = RetryingTransport(timeout=5.0)
    yield transport
    await transport.aclose()


@pytest.fixture
def store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def app_provider(transport: RetryingTransport, retry_policy: RetryPolicy) -> AppAccountProvider:
    return AppAccountProvider(transport, retry_policy, base_url=API_BASE)


@pytest.fixture
def spotify_provider(transport: RetryingTransport, retry_policy: RetryPolicy) -> SpotifyProvider:
    return SpotifyProvider(
        transport,
        retry_policy,
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="com.bopmaps://callback",
    )


@pytest.fixture
def client(
    transport: RetryingTransport,
    retry_policy: RetryPolicy,
    app_provider: AppAccountProvider,
    spotify_provider: SpotifyProvider,
    store: MemorySecretStore,
    clock: FixedClock,
) -> AuthenticatedApiClient:
    return AuthenticatedApiClient(
        transport,
        retry_policy,
        [app_provider, spotify_provider],
        store,
        expiry_buffer_seconds=60,
        default_lifetime_seconds=3600,
        clock=clock,
    )
