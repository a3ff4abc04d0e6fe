"""Tests for ClientSettings."""

import pytest

from bopmaps_client.settings import ClientSettings, get_settings


def test_defaults() -> None:
    """Settings have sensible defaults."""
    settings = ClientSettings()
    assert settings.API_BASE_URL == "https://api.bopmaps.com"
    assert settings.MAX_RETRIES == 3
    assert settings.INITIAL_RETRY_DELAY_SECONDS == 1.0
    assert settings.REQUEST_TIMEOUT_SECONDS == 30.0
    assert settings.TOKEN_EXPIRY_BUFFER_SECONDS == 60
    assert settings.DEFAULT_ACCESS_TOKEN_LIFETIME_SECONDS == 3600
    assert settings.SPOTIFY_REDIRECT_URI == "com.bopmaps://callback"
    assert settings.SECRET_STORE_PATH == ""


def test_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings can be overridden via environment variables."""
    monkeypatch.setenv("API_BASE_URL", "http://localhost:8000")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("LOG_JSON", "false")

    settings = ClientSettings()
    assert settings.API_BASE_URL == "http://localhost:8000"
    assert settings.MAX_RETRIES == 5
    assert settings.LOG_JSON is False


def test_get_settings_is_cached() -> None:
    """get_settings returns one shared instance."""
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
