"""OpenTelemetry tracing configuration.

Tracing is off unless ``OTEL_EXPORTER_TYPE`` selects an exporter. When it is
on, HTTP requests get spans from the FastAPI instrumentation and every saga
step gets a child span from :mod:`rollcall.infra.observability.instrumentation`.

Usage:
    # In a lifespan hook, after configure_logging()
    configure_tracing(app)
    ...
    shutdown_tracing()
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None

EXPORTER_TYPES = frozenset({"otlp", "console", "none"})


class TracingSettings(BaseSettings):
    """Tracing configuration from the standard ``OTEL_*`` variables.

    Attributes:
        service_name: ``service.name`` resource attribute.
        service_version: ``service.version`` resource attribute.
        exporter_type: ``otlp``, ``console`` or ``none`` (disabled).
        otlp_endpoint: OTLP collector gRPC endpoint.
        otlp_headers: Collector headers as ``key1=val1,key2=val2``.
        sample_rate: Fraction of root traces recorded, 0.0 to 1.0.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    service_name: str = Field(default="rollcall", alias="OTEL_SERVICE_NAME")
    service_version: str = Field(default="unknown", alias="OTEL_SERVICE_VERSION")
    exporter_type: str = Field(default="none", alias="OTEL_EXPORTER_TYPE")
    otlp_endpoint: str = Field(
        default="http://localhost:4317",
        alias="OTEL_EXPORTER_OTLP_ENDPOINT",
    )
    otlp_headers: str = Field(default="", alias="OTEL_EXPORTER_OTLP_HEADERS")
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0, alias="OTEL_TRACE_SAMPLE_RATE")

    @field_validator("exporter_type", mode="before")
    @classmethod
    def validate_exporter_type(cls, v: Any) -> str:
        exporter = str(v).lower()
        if exporter not in EXPORTER_TYPES:
            msg = f"exporter_type must be one of {sorted(EXPORTER_TYPES)}"
            raise ValueError(msg)
        return exporter

    @property
    def is_enabled(self) -> bool:
        return self.exporter_type != "none"

    @property
    def otlp_headers_dict(self) -> dict[str, str]:
        """Parse ``otlp_headers``; values may themselves contain ``=``."""
        result: dict[str, str] = {}
        for pair in self.otlp_headers.split(","):
            if "=" in pair:
                key, value = pair.split("=", 1)
                result[key.strip()] = value.strip()
        return result


@lru_cache(maxsize=1)
def get_tracing_settings() -> TracingSettings:
    return TracingSettings()


def _create_exporter(settings: TracingSettings) -> SpanExporter:
    if settings.exporter_type == "otlp":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(
            endpoint=settings.otlp_endpoint,
            headers=settings.otlp_headers_dict or None,
        )
    if settings.exporter_type == "console":
        return ConsoleSpanExporter()
    msg = f"Unknown exporter type: {settings.exporter_type}"
    raise ValueError(msg)


def configure_tracing(app: FastAPI, settings: TracingSettings | None = None) -> None:
    """Install a TracerProvider and instrument the FastAPI app.

    Does nothing when the exporter type is ``none``. Sampling is parent based
    so a caller's sampling decision carries through the registration saga.

    Args:
        app: Application to instrument.
        settings: Optional TracingSettings. Loaded from the environment when None.
    """
    global _tracer_provider

    if settings is None:
        settings = get_tracing_settings()
    if not settings.is_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
        }
    )
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.sample_rate)),
    )
    provider.add_span_processor(BatchSpanProcessor(_create_exporter(settings)))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    FastAPIInstrumentor.instrument_app(app)
    logger.info(
        "tracing_configured",
        extra={"exporter": settings.exporter_type, "sample_rate": settings.sample_rate},
    )


def shutdown_tracing() -> None:
    """Flush pending spans and shut the provider down. Idempotent."""
    global _tracer_provider

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
