"""Registry application factory.

The registry router, the services lifespan and trace-context middleware are
passed explicitly. Request-id and request-context middleware, RFC 7807
error handlers, the health endpoint and the infrastructure lifespans come
from ``create_app`` and installed entry points.

Usage::

    from rollcall.app.registry import create_registry_app

    app = create_registry_app()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rollcall.app.registry.routers import router as registry_router
from rollcall.app.registry.settings import RegistrySettings, get_registry_settings
from rollcall.app.registry.wiring import services_lifespan
from rollcall.infra.fastapi import AppSettings, create_app
from rollcall.infra.observability.middleware import contribution as trace_context

if TYPE_CHECKING:
    from fastapi import FastAPI

    from rollcall.app.registry.services import RegistryServices


def _default_excludes(settings: RegistrySettings) -> frozenset[str]:
    """Entry points that need infrastructure this configuration does not use."""
    excluded: set[str] = set()
    if not settings.uses_database:
        excluded.add("persistence")
    if not settings.uses_taskiq:
        excluded.add("taskiq")
    return frozenset(excluded)


def create_registry_app(
    app_settings: AppSettings | None = None,
    registry_settings: RegistrySettings | None = None,
    *,
    services: RegistryServices | None = None,
    exclude_names: frozenset[str] | None = None,
    discover_entry_points: bool = True,
) -> FastAPI:
    """Create the registry API.

    Args:
        app_settings: FastAPI settings; read from ``APP_*`` when omitted.
        registry_settings: Adapter selection; read from ``REGISTRY_*`` when
            omitted. Ignored for adapter choice when ``services`` is given.
        services: Prebuilt services, e.g. with in-memory fakes for tests.
        exclude_names: Entry-point names to suppress. Defaults to the
            infrastructure lifespans the configuration does not need.
        discover_entry_points: Load contributions from installed packages.
    """
    settings = services.settings if services is not None else registry_settings
    settings = settings or get_registry_settings()
    app_settings = app_settings or AppSettings()
    excluded = exclude_names if exclude_names is not None else _default_excludes(settings)
    return create_app(
        app_settings,
        routers=[registry_router],
        middleware=[trace_context],
        lifespan_hooks=[services_lifespan(settings, services)],
        exclude_names=excluded | app_settings.exclude_entry_points,
        discover_entry_points=discover_entry_points,
    )
