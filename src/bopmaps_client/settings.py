"""Client settings loaded from environment variables."""

import functools

from pydantic_settings import BaseSettings

from bopmaps_client.constants import (
    DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS,
    DEFAULT_API_BASE_URL,
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_SPOTIFY_REDIRECT_URI,
    DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
)


class ClientSettings(BaseSettings):
    """API client configuration."""

    # Backend
    API_BASE_URL: str = DEFAULT_API_BASE_URL

    # Spotify app credentials
    SPOTIFY_CLIENT_ID: str = ""
    SPOTIFY_CLIENT_SECRET: str = ""
    SPOTIFY_REDIRECT_URI: str = DEFAULT_SPOTIFY_REDIRECT_URI

    # Transport and retry
    MAX_RETRIES: int = DEFAULT_MAX_RETRIES
    INITIAL_RETRY_DELAY_SECONDS: float = DEFAULT_RETRY_BASE_DELAY
    REQUEST_TIMEOUT_SECONDS: float = DEFAULT_REQUEST_TIMEOUT
    CONCURRENCY_LIMIT: int = DEFAULT_CONCURRENCY_LIMIT

    # Token lifecycle
    TOKEN_EXPIRY_BUFFER_SECONDS: int = DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS
    DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS: int = DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS

    # Secret storage (empty path = in-memory store)
    SECRET_STORE_PATH: str = ""
    TOKEN_ENCRYPTION_KEY: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"env_prefix": ""}


@functools.lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    """Return cached client settings singleton."""
    return ClientSettings()
