"""Credential lifecycle: token models, secret storage, identity providers and token managers."""

from bopmaps_client.auth.providers import AppAccountProvider, IdentityProvider, SpotifyProvider
from bopmaps_client.auth.schemas import TokenGrant, TokenPair
from bopmaps_client.auth.secret_store import (
    EncryptedFileSecretStore,
    MemorySecretStore,
    SecretStore,
    build_secret_store,
)
from bopmaps_client.auth.tokens import TokenLifecycleManager, TokenState

__all__ = [
    "AppAccountProvider",
    "EncryptedFileSecretStore",
    "IdentityProvider",
    "MemorySecretStore",
    "SecretStore",
    "SpotifyProvider",
    "TokenGrant",
    "TokenLifecycleManager",
    "TokenPair",
    "TokenState",
    "build_secret_store",
]
