"""Unit tests for core/config.py -- Settings validation and derived values."""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_SECRET = "x" * 32


class TestSecretPolicy:
    def test_missing_secret_refused(self, monkeypatch) -> None:
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ValidationError, match="JWT_SECRET environment variable not set"):
            Settings(_env_file=None)

    def test_short_secret_refused(self) -> None:
        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(jwt_secret="too-short", _env_file=None)

    def test_non_positive_ttl_refused(self) -> None:
        with pytest.raises(ValidationError, match="Token lifetimes must be positive"):
            Settings(jwt_secret=GOOD_SECRET, access_token_ttl_seconds=0, _env_file=None)


class TestDefaults:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("LOCAL_DB_PATH", "LOGIN_RATE_LIMIT", "ALLOWED_HOSTS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(jwt_secret=GOOD_SECRET, _env_file=None)
        assert settings.port == 8080
        assert settings.access_token_ttl_seconds == 600
        assert settings.refresh_token_ttl_seconds == 604800
        assert settings.login_rate_limit == "10/minute"
        assert settings.database_url == "sqlite:///accounts.db"

    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("LOCAL_DB_PATH", ":memory:")
        monkeypatch.setenv("PORT", "9000")
        settings = Settings(jwt_secret=GOOD_SECRET, _env_file=None)
        assert settings.database_url == "sqlite:///file:accounts?mode=memory&cache=shared&uri=true"
        assert settings.port == 9000
