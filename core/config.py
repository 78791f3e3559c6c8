"""
core/config.py -- Server configuration, read once from the environment.

Every server-side setting lives on Settings. Modules under api/, auth/ and
register/ ask get_settings() for values instead of touching os.environ; the
CLI in main.py is a client and keeps its own RISKREG_* variables.

Values come from environment variables or a .env file in the working
directory (field secret_key <- SECRET_KEY and so on). get_settings() is
cached, so the first call fixes the configuration for the process.

SECRET_KEY handling:
  DEBUG=true with no key   -> a random key is generated and a warning logged;
                              issued tokens die with the process.
  DEBUG unset with no key  -> startup fails.
  any key under 32 chars   -> startup fails.

core/ sits at the bottom of the import graph and imports nothing from api/,
auth/, register/ or client/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("riskregister.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'riskregister.db'}"


class Settings(BaseSettings):
    """Every field has a default, so Settings() works without a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces it or refuses to start.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # The register is meant to be reached from other machines on the LAN,
    # by IP address, so host checking is open unless narrowed here.
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Tokens are stateless and cannot be revoked; 24 hours bounds how long a
    # demoted user keeps the role baked into an earlier token.
    token_expire_seconds: int = 24 * 60 * 60
    bcrypt_rounds: int = 10
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    ai_rate_limit: str = "20/minute"

    # ------------------------------------------------------------------
    # AI advisor (optional -- empty key means suggestions are unavailable)
    # ------------------------------------------------------------------

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_timeout_seconds: int = 30

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY and range-check BCRYPT_ROUNDS."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; generated a throwaway key for this DEBUG session")
            else:
                raise ValueError(
                    "SECRET_KEY is not set. Export it or add it to .env (DEBUG=true generates a temporary one)."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached Settings; tests call get_settings.cache_clear() after changing the environment."""
    return Settings()
