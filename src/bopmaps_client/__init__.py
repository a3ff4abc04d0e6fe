"""BOPMaps API client: authenticated requests, token lifecycle and secret storage."""

from bopmaps_client.auth import (
    AppAccountProvider,
    EncryptedFileSecretStore,
    IdentityProvider,
    MemorySecretStore,
    SecretStore,
    SpotifyProvider,
    TokenGrant,
    TokenLifecycleManager,
    TokenPair,
    TokenState,
    build_secret_store,
)
from bopmaps_client.client import AuthenticatedApiClient, ConnectionReport
from bopmaps_client.constants import IdentityDomain
from bopmaps_client.exceptions import (
    BopmapsClientError,
    SecretStoreError,
    TokenRefreshError,
    UnsupportedOperationError,
)
from bopmaps_client.http import ErrorKind, ResponseEnvelope, RetryingTransport, RetryPolicy
from bopmaps_client.logging import configure_logging, configure_logging_from_settings
from bopmaps_client.settings import ClientSettings, get_settings

__all__ = [
    "AppAccountProvider",
    "AuthenticatedApiClient",
    "BopmapsClientError",
    "ClientSettings",
    "ConnectionReport",
    "EncryptedFileSecretStore",
    "ErrorKind",
    "IdentityDomain",
    "IdentityProvider",
    "MemorySecretStore",
    "ResponseEnvelope",
    "RetryPolicy",
    "RetryingTransport",
    "SecretStore",
    "SecretStoreError",
    "SpotifyProvider",
    "TokenGrant",
    "TokenLifecycleManager",
    "TokenPair",
    "TokenRefreshError",
    "TokenState",
    "UnsupportedOperationError",
    "build_secret_store",
    "configure_logging",
    "configure_logging_from_settings",
    "get_settings",
]
