"""Connection settings for the shared Redis membership cache."""

from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis connection, read from ``REDIS_*`` variables.

    ``REDIS_URL`` (``redis://`` or ``rediss://``) wins over ``REDIS_HOST``,
    ``REDIS_PORT``, ``REDIS_DB`` and ``REDIS_PASSWORD``.

    Example:
        >>> RedisSettings(host="cache", port=6380).connection_url
        'redis://cache:6380/0'
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: SecretStr | None = Field(default=None)
    host: str = Field(default="localhost")
    port: int = Field(default=6379, ge=1, le=65535)
    db: int = Field(default=0, ge=0, le=15)
    password: SecretStr | None = Field(default=None)

    pool_size: int = Field(default=10, ge=1, le=100, description="Max pooled connections")
    socket_timeout: float = Field(default=5.0, ge=0.1)
    socket_connect_timeout: float = Field(default=5.0, ge=0.1)

    @field_validator("url")
    @classmethod
    def _check_scheme(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None:
            scheme = urlsplit(value.get_secret_value()).scheme
            if scheme not in ("redis", "rediss"):
                msg = f"Invalid Redis URL scheme: {scheme or '(none)'}"
                raise ValueError(msg)
        return value

    @property
    def connection_url(self) -> str:
        if self.url is not None:
            return self.url.get_secret_value()
        auth = f":{self.password.get_secret_value()}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"
