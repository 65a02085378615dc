"""
Authentication Settings

Policy constants for lockout, TOTP and backup codes, loaded from the
environment (prefix ``PGAUTH_``) or a ``.env`` file.

The TOTP step and digit count are fixed by the authenticator apps this
system targets; they are exposed for visibility but only the standard
values are accepted.
"""

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TOTP_TIME_STEP = 30  # seconds
TOTP_DIGITS = 6


class AuthSettings(BaseSettings):
    lockout_threshold: int = Field(default=5, ge=1)
    lockout_duration_minutes: int = Field(default=30, ge=1)

    totp_step: int = TOTP_TIME_STEP
    totp_window: int = Field(default=1, ge=0)
    totp_digits: int = TOTP_DIGITS

    backup_code_count: int = Field(default=10, ge=1)
    issuer: str = "PG-Control-Plane"

    model_config = SettingsConfigDict(
        env_prefix="PGAUTH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("totp_step")
    @classmethod
    def _fixed_step(cls, value: int) -> int:
        if value != TOTP_TIME_STEP:
            raise ValueError(f"totp_step is fixed at {TOTP_TIME_STEP} seconds")
        return value

    @field_validator("totp_digits")
    @classmethod
    def _fixed_digits(cls, value: int) -> int:
        if value != TOTP_DIGITS:
            raise ValueError(f"totp_digits is fixed at {TOTP_DIGITS}")
        return value

    @property
    def lockout_duration(self) -> timedelta:
        """Lock duration as a timedelta."""
        return timedelta(minutes=self.lockout_duration_minutes)


@lru_cache(maxsize=1)
def get_settings() -> AuthSettings:
    """Process-wide settings instance."""
    return AuthSettings()
