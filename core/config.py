"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the account service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET, local_db_path -> LOCAL_DB_PATH).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. A missing JWT_SECRET is a hard startup
      failure -- there is no generated fallback key.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every issued token.

  The secret is read here once and handed explicitly to AuthService. Token
  functions in auth/tokens.py never reach for global state.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
kv/, or users/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("accounts.config")

_MIN_SECRET_LENGTH = 32
_MEMORY_DB_NAME = "accounts"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Everything except jwt_secret has a default. The model_validator enforces
    the secret policy at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"  # noqa: S104 # nosec B104 -- container default
    port: int = 8080

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # Path of the embedded key-value database. ":memory:" keeps everything in
    # process memory (lost on restart), shared by all worker threads.
    local_db_path: str = "accounts.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; the validator below
    # refuses to start in that case.
    jwt_secret: str = ""
    access_token_ttl_seconds: int = 10 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Refuse to start without a usable signing secret.

        Both missing and short secrets raise ValueError, which pydantic wraps
        in a ValidationError at Settings() construction time.
        """
        if not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET environment variable not set. " "Set JWT_SECRET in your environment or .env file."
            )
        if len(self.jwt_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"JWT_SECRET must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_ttl_seconds <= 0 or self.refresh_token_ttl_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        if self.debug:
            logger.warning("DEBUG is enabled -- do not run this configuration in production.")
        return self

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the embedded key-value store.

        ":memory:" maps to a named shared-cache database so every pooled
        connection (one per worker thread) sees the same data while keeping
        its own transaction.
        """
        if self.local_db_path == ":memory:":
            return f"sqlite:///file:{_MEMORY_DB_NAME}?mode=memory&cache=shared&uri=true"
        return f"sqlite:///{self.local_db_path}"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
