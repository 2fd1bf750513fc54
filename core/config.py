"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the orgauth server happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead. The CLI (main.py) is a separate client process and reads its own
address/token variables.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. auth_config_github_token -> AUTH_CONFIG_GITHUB_TOKEN).

  @model_validator(mode="after"): Enforces the OPERATOR_TOKEN policy. Dev mode
      generates a token with a warning, production mode refuses to start
      without one.

Security notes:
  [S1] AUTH_CONFIG_GITHUB_TOKEN is only ever used for the organization ID
       lookup. It is never persisted and never accepted from a request body,
       so a caller cannot use their own elevated credential to read an
       unrelated organization's ID.

  [S2] OPERATOR_TOKEN shorter than 32 chars is rejected outright.

Layer rule: core/ is the kernel. This module may not import from api/,
backend/, or storage/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("orgauth.config")

_DEFAULT_STORAGE_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'storage' / 'orgauth.db'}"


class Settings(BaseSettings):
    """Server settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev token or raises, so callers never see "".
    operator_token: str = ""

    # ------------------------------------------------------------------
    # GitHub organization lookup [S1]
    # ------------------------------------------------------------------

    auth_config_github_token: str = ""
    github_api_url: str = "https://api.github.com/"
    github_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    storage_url: str = _DEFAULT_STORAGE_URL

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    config_write_rate_limit: str = "30/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_operator_token(self) -> "Settings":
        """Enforce the OPERATOR_TOKEN policy [S2].

        Dev mode (DEBUG=true): auto-generate a random token with a warning.
            The token changes on every restart.

        Production mode (DEBUG=false or not set): refuse to start if
            OPERATOR_TOKEN is missing. An unprotected config endpoint would
            let anyone rebind the trusted organization.
        """
        if not self.operator_token:
            if self.debug:
                self.operator_token = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated OPERATOR_TOKEN. It will change on restart.")
            else:
                raise ValueError(
                    "OPERATOR_TOKEN is required in production mode. "
                    "Set OPERATOR_TOKEN in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.operator_token) < 32:
            raise ValueError("OPERATOR_TOKEN must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
