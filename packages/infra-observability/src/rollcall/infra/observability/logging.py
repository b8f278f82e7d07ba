"""Structured logging configuration using structlog.

Library and domain modules log through the standard library
(``logging.getLogger(__name__)`` with ``extra={...}``); this module routes
those records through the same structlog processor chain as native structlog
loggers, so both end up as one stream of either JSON lines (production) or
colored console output (development).

Usage:
    # During application startup
    from rollcall.infra.observability.logging import configure_logging
    configure_logging()

    # In application code
    logger = logging.getLogger(__name__)
    logger.info("code_regenerated", extra={"tenant_id": str(tenant_id)})
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping

Processor = structlog.types.Processor

SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "secret",
        "admin_secret",
        "service_key",
        "authorization",
        "token",
        "api_key",
        "credential",
    }
)

# Substrings that mark compound keys such as ``user_password`` or ``refresh_token``.
SENSITIVE_FRAGMENTS: tuple[str, ...] = ("password", "secret", "token")

REDACTED_VALUE: str = "***REDACTED***"

_BEARER_RE = re.compile(r"^\s*bearer\s+\S+", re.IGNORECASE)
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")

_HANDLER_NAME = "rollcall-structlog"

_VALID_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class LoggingSettings(BaseSettings):
    """Logging configuration from ``LOG_*`` environment variables.

    Attributes:
        level: Minimum level emitted (``LOG_LEVEL``). Default: INFO.
        format: ``json`` or ``console`` (``LOG_FORMAT``). Default: console.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = Field(default="INFO", description="Minimum log level to output")
    format: Literal["json", "console"] = Field(
        default="console",
        description="Renderer: json lines or colored console output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in _VALID_LEVELS:
            msg = f"level must be one of {sorted(_VALID_LEVELS)}"
            raise ValueError(msg)
        return level

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @property
    def use_json_logs(self) -> bool:
        return self.format == "json"

    @property
    def level_int(self) -> int:
        return logging.getLevelName(self.level)  # type: ignore[no-any-return]


class SensitiveDataProcessor:
    """Structlog processor that redacts credentials from the event dict.

    A value is replaced when its key names a credential (exact match against
    ``SENSITIVE_FIELDS`` or containing one of ``SENSITIVE_FRAGMENTS``), or
    when the value itself looks like a bearer header or a JWT. Nested
    mappings such as ``user_metadata`` are scanned as well.

    Example:
        >>> processor = SensitiveDataProcessor()
        >>> processor(None, "info", {"event": "x", "admin_secret": "hunter22"})
        {'event': 'x', 'admin_secret': '***REDACTED***'}
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict.keys()):
            if key == "event":
                continue
            event_dict[key] = self._scrub(key, event_dict[key])
        return event_dict

    def _scrub(self, key: str, value: Any) -> Any:
        if self._is_sensitive(key):
            return REDACTED_VALUE
        if isinstance(value, Mapping):
            return {str(k): self._scrub(str(k), v) for k, v in value.items()}
        if isinstance(value, str) and (_BEARER_RE.match(value) or _JWT_RE.search(value)):
            return REDACTED_VALUE
        return value

    @staticmethod
    def _is_sensitive(key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        return any(fragment in key_lower for fragment in SENSITIVE_FRAGMENTS)


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Cached LoggingSettings; ``cache_clear()`` in tests."""
    return LoggingSettings()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
    ]


def _renderer_chain(settings: LoggingSettings) -> list[Processor]:
    if settings.use_json_logs:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Installs a single root handler whose ``ProcessorFormatter`` copies the
    ``extra`` fields of stdlib records into the event dict, then applies the
    same processors (context variables, level, UTC timestamp, redaction) and
    renderer used by structlog loggers. Calling it again replaces the handler
    instead of adding a second one.

    Args:
        settings: Optional LoggingSettings. Loaded from the environment when None.
    """
    if settings is None:
        settings = get_logging_settings()

    shared = _shared_processors()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *shared],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer_chain(settings),
        ],
    )
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.level_int)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(settings.level_int),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger backed by the stdlib logger ``name``."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)
