"""Campusrent application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.

The field name is the **lowercase** version of the env-var name (e.g.
``CRON_SECRET`` → ``cron_secret``).

Typical usage::

    from campusrent.core.settings import Settings

    settings = Settings()                 # loads from env + .env
    print(settings.smtp_configured)       # True / False
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).

    Credentials may be left empty during development; the corresponding
    ``*_configured`` property returns ``False`` and the batch refuses to run
    in live mode.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------
    cron_secret: str = Field(
        default="",
        description="Shared bearer secret the external scheduler must present.",
    )

    # ------------------------------------------------------------------
    # SMTP
    # ------------------------------------------------------------------
    smtp_host: str = Field(default="", description="SMTP relay hostname.")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP port.")
    smtp_secure: bool = Field(
        default=False,
        description="Use implicit TLS (SMTPS, usually port 465).",
    )
    smtp_starttls: bool = Field(
        default=True,
        description="Upgrade a plain connection with STARTTLS (ignored when smtp_secure).",
    )
    smtp_username: str = Field(default="", description="SMTP login user (optional).")
    smtp_password: str = Field(default="", description="SMTP login password.")
    smtp_from: str = Field(default="", description="From address on digest emails.")
    smtp_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds before an SMTP connection attempt is abandoned.",
    )

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Public base URL used to build links inside emails.",
    )
    notification_window: int = Field(
        default=10,
        ge=1,
        description="How many of the newest properties each saved search is matched against.",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/campusrent.db",
        description="Path to the SQLite database file.",
    )

    # ------------------------------------------------------------------
    # HTTP server
    # ------------------------------------------------------------------
    api_host: str = Field(default="127.0.0.1", description="Bind address for --serve.")
    api_port: int = Field(default=8000, ge=1, le=65535, description="Port for --serve.")

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    dry_run: bool = Field(
        default=False,
        description="Log digest emails instead of sending them.",
    )
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("app_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    @model_validator(mode="after")
    def _validate_smtp_auth(self) -> Settings:
        """A username without a password is almost always a typo in ``.env``."""
        if self.smtp_username and not self.smtp_password:
            raise ValueError("smtp_username is set but smtp_password is empty")
        return self

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def database_path_resolved(self) -> Path:
        """Return the database path as a resolved :class:`~pathlib.Path`."""
        return Path(self.database_path).resolve()

    @property
    def smtp_configured(self) -> bool:
        """``True`` if a relay host and a From address are set."""
        return bool(self.smtp_host and self.smtp_from)

    @property
    def cron_configured(self) -> bool:
        """``True`` if the trigger shared secret is set."""
        return bool(self.cron_secret)
