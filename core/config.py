"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the forum happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a SECRET_KEY with a warning; production
      mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session JWTs are
       HS256-signed with it, so a short key weakens every session.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. A random per-process key would silently log every
       user out on restart.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
board/, or cache/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("forum.config")

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = f"sqlite:///{_DATA_DIR / 'forum.db'}"
    # Host headers accepted by TrustedHostMiddleware. JSON list in the env.
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    # Peers whose X-Forwarded-For / X-Forwarded-Proto are believed. JSON list in the env.
    forwarded_allow_ips: list[str] = ["127.0.0.1"]

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # 7 days, sliding. The refresh middleware re-issues the cookie once half
    # of this lifetime has elapsed.
    session_expire_seconds: int = 7 * 24 * 3600

    # ------------------------------------------------------------------
    # Login throttling
    # ------------------------------------------------------------------

    login_max_attempts: int = 5
    login_lockout_seconds: int = 15 * 60
    # Per-IP request throttle applied by slowapi in front of the per-account
    # lockout above.
    login_rate_limit: str = "20/minute"
    rate_limit_backend: Literal["memory", "sqlite"] = "memory"
    cache_db_path: Path = _DATA_DIR / "forum_cache.db"

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    self_registration_enabled: bool = True
    # Leave admin_password empty to skip the first-start admin bootstrap.
    admin_username: str = "admin"
    admin_email: str = "admin@localhost"
    admin_display_name: str = "Administrator"
    admin_password: str = ""

    # ------------------------------------------------------------------
    # Content policy
    # ------------------------------------------------------------------

    # True: an Admin may edit or delete anonymous content without its
    # password. False: anonymous content always requires the password.
    admin_bypass_anonymous_content: bool = True

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    upload_dir: Path = _DATA_DIR / "uploads"
    max_image_bytes: int = 10 * 1024 * 1024
    max_video_bytes: int = 50 * 1024 * 1024

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
