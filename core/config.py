"""
core/config.py -- authgate settings, loaded once from the environment.

Every environment variable the service understands is a field on Settings.
Modules never read os.environ themselves. Only api/main.py calls
get_settings(); the auth/ components are handed plain values (secret key,
bcrypt cost, mail credentials) when the lifespan builds them.

Settings come from the process environment first, then a .env file in the
working directory. Field names map to upper-case variables
(secret_key -> SECRET_KEY, resend_api_key -> RESEND_API_KEY).

Startup policy, enforced by the model validators below:
  SECRET_KEY signs every JWT the service issues. With DEBUG=true a random
  key is generated when none is set (sessions then die with the process);
  otherwise a missing key stops startup. Keys under 32 characters are
  always refused.

  BCRYPT_ROUNDS must be a cost bcrypt accepts (4..31). Anything under 15
  needs DEBUG=true; the test suite runs at 4.

Layer rule: core/ imports nothing from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

MIN_PRODUCTION_BCRYPT_ROUNDS = 15


class Settings(BaseSettings):
    """Service configuration.

    Every field has a default, so tests can build Settings(**overrides)
    without a .env file.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///authgate.db"
    # Public base URL of this API; OAuth redirect URIs are built from it.
    app_url: str = "http://localhost:8000"
    # Comma-separated. The first origin is the front-end that receives
    # verification links and post-OAuth redirects.
    cors_origins: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    bcrypt_rounds: int = MIN_PRODUCTION_BCRYPT_ROUNDS

    # ------------------------------------------------------------------
    # Mail (Resend)
    # ------------------------------------------------------------------

    resend_api_key: str = ""
    resend_mail_id: str = ""

    # ------------------------------------------------------------------
    # OAuth providers (optional -- empty string means provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    github_client_id: str = ""
    github_client_secret: str = ""

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def frontend_origin(self) -> str:
        origins = self.cors_origin_list
        return origins[0] if origins else ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key under DEBUG, otherwise require one of at least 32 chars."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; generated a temporary key. Sessions end when the process restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required unless DEBUG=true. "
                    "Set it in the environment or in .env."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_bcrypt_rounds(self) -> "Settings":
        """bcrypt accepts costs 4..31; production requires at least 15."""
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.bcrypt_rounds < MIN_PRODUCTION_BCRYPT_ROUNDS and not self.debug:
            raise ValueError(f"BCRYPT_ROUNDS below {MIN_PRODUCTION_BCRYPT_ROUNDS} is only allowed with DEBUG=true.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    Call get_settings.cache_clear() to pick up changed environment variables.
    """
    return Settings()
