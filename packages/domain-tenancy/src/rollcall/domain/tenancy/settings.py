"""Policy settings for codes, invitations and registration.

Loaded from environment variables (``CODES_``, ``INVITATIONS_`` and
``REGISTRATION_`` prefixes) with ``.env`` support.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CodePolicySettings(BaseSettings):
    """Join-code generation and lifecycle policy.

    Environment Variables:
        CODES_LENGTH: Characters per code (default: 8)
        CODES_REGENERATED_TTL_HOURS: Lifetime of regenerated codes (default: 24)
        CODES_INITIAL_TTL_HOURS: Lifetime of the registration code (default: none)
        CODES_MAX_GENERATION_ATTEMPTS: Collision retries (default: 5)
        CODES_MAX_CONCURRENCY_RETRIES: Rotation retries on conflict (default: 3)
        CODES_MAX_REGENERATIONS_PER_WINDOW: Rate limit (default: 5)
        CODES_RATE_LIMIT_WINDOW_HOURS: Rate limit window (default: 24)
    """

    model_config = SettingsConfigDict(
        env_prefix="CODES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    length: int = Field(default=8, ge=6, le=32, description="Characters per code")
    regenerated_ttl_hours: int = Field(default=24, ge=1, description="Regenerated code lifetime")
    initial_ttl_hours: int | None = Field(
        default=None, ge=1, description="Registration code lifetime; None never expires"
    )
    max_generation_attempts: int = Field(default=5, ge=1, le=50)
    max_concurrency_retries: int = Field(default=3, ge=1, le=20)
    max_regenerations_per_window: int = Field(default=5, ge=1)
    rate_limit_window_hours: int = Field(default=24, ge=1)

    @property
    def regenerated_ttl(self) -> timedelta:
        return timedelta(hours=self.regenerated_ttl_hours)

    @property
    def initial_ttl(self) -> timedelta | None:
        if self.initial_ttl_hours is None:
            return None
        return timedelta(hours=self.initial_ttl_hours)

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(hours=self.rate_limit_window_hours)


class InvitationSettings(BaseSettings):
    """Invitation policy (``INVITATIONS_`` prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="INVITATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ttl_days: int = Field(default=7, ge=1, le=90, description="Days until an invitation expires")
    max_generation_attempts: int = Field(default=5, ge=1, le=50)

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self.ttl_days)


class RegistrationSettings(BaseSettings):
    """Registration saga settings (``REGISTRATION_`` prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="REGISTRATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    step_timeout_seconds: float | None = Field(
        default=15.0, gt=0, description="Per-step time budget; None disables it"
    )
