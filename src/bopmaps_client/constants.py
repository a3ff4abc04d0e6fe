"""Centralized constants: identity domains, endpoints, storage keys and retry defaults."""

import enum
from dataclasses import dataclass

# --- Identity domains ---


class IdentityDomain(enum.StrEnum):
    """Credential scopes, each with its own token pair and refresh endpoint."""

    APP = "app"
    SPOTIFY = "spotify"


MUSIC_DOMAINS: tuple[IdentityDomain, ...] = (IdentityDomain.SPOTIFY,)


# --- Service identity ---

SERVICE_NAME = "bopmaps-client"


# --- BOPMaps backend ---

DEFAULT_API_BASE_URL = "https://api.bopmaps.com"

USERS_AUTH_BASE = "/users/auth"
TOKEN_ENDPOINT = f"{USERS_AUTH_BASE}/token/"
TOKEN_REFRESH_ENDPOINT = f"{USERS_AUTH_BASE}/token/refresh/"
LOGOUT_ENDPOINT = f"{USERS_AUTH_BASE}/logout/"
REGISTER_ENDPOINT = "/auth/register"
SCHEMA_ENDPOINT = "/schema/"


# --- Spotify ---

SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"

SPOTIFY_SCOPES = "user-read-private user-read-email user-library-read user-top-read streaming"

DEFAULT_SPOTIFY_REDIRECT_URI = "com.bopmaps://callback"


# --- Secret storage ---


@dataclass(frozen=True, slots=True)
class TokenStorageKeys:
    """Secret-store keys owned by one identity domain."""

    access_token: str
    refresh_token: str
    expires_at: str

    @classmethod
    def for_domain(cls, domain: IdentityDomain) -> "TokenStorageKeys":
        return cls(
            access_token=f"{domain}_access_token",
            refresh_token=f"{domain}_refresh_token",
            expires_at=f"{domain}_token_expiry",
        )

    def all(self) -> tuple[str, str, str]:
        return (self.access_token, self.refresh_token, self.expires_at)


# --- Retry / transport defaults ---

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_CONCURRENCY_LIMIT = 10
CONNECTION_CHECK_TIMEOUT = 10.0  # seconds

# --- Token defaults ---

DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS = 60  # Refresh tokens this many seconds before expiry
DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS = 3600
