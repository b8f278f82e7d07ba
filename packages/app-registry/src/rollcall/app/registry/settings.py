"""Composition settings for the registry application.

Selects which adapter backs each port. Loaded from environment variables
with the ``REGISTRY_`` prefix.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    """Adapter selection for the registry services.

    Environment Variables:
        REGISTRY_STORE_BACKEND: ``sql`` (DATABASE_* settings) or ``memory``
        REGISTRY_IDENTITY_BACKEND: ``http`` (IDENTITY_* settings) or ``memory``
        REGISTRY_NOTIFIER: How verification links go out after registration:
            ``gateway`` in-process, ``taskiq`` through a worker, or ``none``
    """

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    store_backend: Literal["sql", "memory"] = Field(default="sql")
    identity_backend: Literal["http", "memory"] = Field(default="http")
    notifier: Literal["gateway", "taskiq", "none"] = Field(default="gateway")

    @property
    def uses_database(self) -> bool:
        return self.store_backend == "sql"

    @property
    def uses_taskiq(self) -> bool:
        return self.notifier == "taskiq"


@lru_cache(maxsize=1)
def get_registry_settings() -> RegistrySettings:
    return RegistrySettings()
