"""Identity provider configuration settings.

Loaded from environment variables with IDENTITY_ prefix.
Follows Pydantic BaseSettings pattern for type-safe configuration.

Environment Variables:
    IDENTITY_BASE_URL: Identity provider auth API root (e.g. https://x.supabase.co/auth/v1)
    IDENTITY_SERVICE_KEY: Service-role key for the admin API
    IDENTITY_TIMEOUT_SECONDS: Per-request timeout
    IDENTITY_VERIFICATION_REDIRECT_URL: Where verification links land
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IdentitySettings(BaseSettings):
    """Identity provider admin API configuration.

    Example:
        >>> settings = IdentitySettings(base_url="http://localhost:9999")
        >>> settings.is_configured()
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:9999",
        description="Identity provider auth API root",
    )
    service_key: SecretStr = Field(
        default=SecretStr(""),
        description="Service-role key for admin endpoints (never logged)",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout in seconds",
    )
    verification_redirect_url: str = Field(
        default="http://localhost:3000/auth/verified",
        description="Redirect target embedded in verification links",
    )

    @field_validator("base_url", "verification_redirect_url")
    @classmethod
    def _validate_http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            msg = "must be a valid HTTP(S) URL"
            raise ValueError(msg)
        return value.rstrip("/")

    def is_configured(self) -> bool:
        """True when a service key is present."""
        return bool(self.service_key.get_secret_value())


@lru_cache(maxsize=1)
def get_identity_settings() -> IdentitySettings:
    """Get singleton IdentitySettings instance.

    Clear cache with ``get_identity_settings.cache_clear()`` for testing.
    """
    return IdentitySettings()
