"""Application settings for the app factory: FastAPI metadata, CORS, discovery."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(v: Any) -> Any:
    if isinstance(v, str):
        return [s.strip() for s in v.split(",") if s.strip()]
    return v


class CORSSettings(BaseSettings):
    """CORS policy from ``APP_CORS_*`` variables; lists may be comma-separated."""

    model_config = SettingsConfigDict(env_prefix="APP_CORS_", extra="ignore")

    allow_origins: Annotated[list[str], NoDecode] = Field(default=["*"])
    allow_methods: Annotated[list[str], NoDecode] = Field(default=["*"])
    allow_headers: Annotated[list[str], NoDecode] = Field(default=["*"])
    allow_credentials: bool = Field(default=False)
    expose_headers: Annotated[list[str], NoDecode] = Field(
        default=["X-Request-ID", "X-Correlation-ID"]
    )

    @field_validator(
        "allow_origins",
        "allow_methods",
        "allow_headers",
        "expose_headers",
        mode="before",
    )
    @classmethod
    def _parse_comma_separated(cls, v: Any) -> Any:
        return _split_csv(v)

    @model_validator(mode="after")
    def _validate_credentials_with_wildcard(self) -> CORSSettings:
        if self.allow_credentials and self.allow_origins == ["*"]:
            msg = (
                "CORS allow_credentials=True cannot be used with allow_origins=['*']. "
                "Specify explicit origins instead."
            )
            raise ValueError(msg)
        return self


def _default_version() -> str:
    try:
        return version("rollcall")
    except PackageNotFoundError:
        return "0.0.0"


class AppSettings(BaseSettings):
    """FastAPI application settings from ``APP_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    title: str = Field(default="Rollcall")
    version: str = Field(default_factory=_default_version)
    description: str = Field(default="School onboarding: tenants, access codes, invitations.")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default=None)
    openapi_url: str | None = Field(default="/openapi.json")
    debug: bool = Field(default=False)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    # Entry point names skipped during discovery, e.g. "persistence".
    exclude_entry_points: Annotated[frozenset[str], NoDecode] = Field(default=frozenset())

    @field_validator("exclude_entry_points", mode="before")
    @classmethod
    def _parse_excludes(cls, v: Any) -> Any:
        return _split_csv(v)
