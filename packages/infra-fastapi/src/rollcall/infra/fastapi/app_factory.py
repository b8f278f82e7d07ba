"""FastAPI application factory.

:func:`create_app` combines what installed packages advertise under the
``rollcall.*`` entry point groups with what the caller passes explicitly.
Request id and request context middleware and the problem-details error
handlers are always installed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from rollcall.foundation.application import (
    GROUP_ERROR_HANDLERS,
    GROUP_LIFESPAN,
    GROUP_MIDDLEWARE,
    GROUP_ROUTERS,
    ErrorHandlerContribution,
    LifespanContribution,
    MiddlewareContribution,
    discover,
)
from rollcall.infra.fastapi.error_handlers import register_exception_handlers
from rollcall.infra.fastapi.lifespan import compose_lifespan
from rollcall.infra.fastapi.middleware import request_context, request_id
from rollcall.infra.fastapi.settings import AppSettings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi import APIRouter

logger = logging.getLogger(__name__)

CORE_MIDDLEWARE: tuple[MiddlewareContribution, ...] = (
    request_id.contribution,
    request_context.contribution,
)


def _discovered_lifespans(exclude: frozenset[str]) -> list[LifespanContribution]:
    hooks: list[LifespanContribution] = []
    for contrib in discover(GROUP_LIFESPAN, exclude_names=exclude):
        value = contrib.value
        if not isinstance(value, LifespanContribution):
            value = LifespanContribution(hook=value)
        hooks.append(value)
    return hooks


def _discovered_middleware(exclude: frozenset[str]) -> list[MiddlewareContribution]:
    found: list[MiddlewareContribution] = []
    for contrib in discover(GROUP_MIDDLEWARE, exclude_names=exclude):
        if isinstance(contrib.value, MiddlewareContribution):
            found.append(contrib.value)
        else:
            logger.warning("middleware_entry_point_ignored", extra={"entry_point": contrib.name})
    return found


def create_app(
    settings: AppSettings | None = None,
    *,
    routers: Sequence[APIRouter] = (),
    middleware: Sequence[MiddlewareContribution] = (),
    lifespan_hooks: Sequence[LifespanContribution] = (),
    error_handlers: Sequence[ErrorHandlerContribution] = (),
    exclude_names: frozenset[str] | None = None,
    discover_entry_points: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings. Loaded from the environment when None.
        routers: Routers included after the discovered ones.
        middleware: Middleware added alongside the core and discovered ones;
            all are ordered by priority, lowest outermost.
        lifespan_hooks: Hooks composed with the discovered ones by priority.
        error_handlers: Handlers registered after the problem-details ones,
            so they win for their exception class.
        exclude_names: Entry point names to skip. Defaults to
            ``settings.exclude_entry_points``.
        discover_entry_points: Set False to use only explicit contributions.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or AppSettings()
    exclude = exclude_names if exclude_names is not None else settings.exclude_entry_points

    hooks = list(lifespan_hooks)
    middleware_contribs = [*CORE_MIDDLEWARE, *middleware]
    all_routers: list[APIRouter] = []
    if discover_entry_points:
        hooks.extend(_discovered_lifespans(exclude))
        middleware_contribs.extend(_discovered_middleware(exclude))
        all_routers.extend(c.value for c in discover(GROUP_ROUTERS, exclude_names=exclude))
    all_routers.extend(routers)

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description=settings.description,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        lifespan=compose_lifespan(hooks),
    )

    # Starlette wraps in reverse order of add_middleware, so add innermost first.
    for mw in sorted(middleware_contribs, key=lambda m: m.priority, reverse=True):
        app.add_middleware(mw.middleware_class, **mw.kwargs)
        logger.debug(
            "middleware_registered",
            extra={"middleware": mw.middleware_class.__name__, "priority": mw.priority},
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allow_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=settings.cors.expose_headers,
    )

    register_exception_handlers(app, expose_internals=settings.debug)
    handlers = list(error_handlers)
    if discover_entry_points:
        for contrib in discover(GROUP_ERROR_HANDLERS, exclude_names=exclude):
            if isinstance(contrib.value, ErrorHandlerContribution):
                handlers.append(contrib.value)
            elif callable(contrib.value):
                contrib.value(app)
    for eh in handlers:
        app.add_exception_handler(eh.exception_class, eh.handler)

    for router in all_routers:
        app.include_router(router)

    logger.info(
        "app_created",
        extra={
            "title": settings.title,
            "lifespan_hooks": len(hooks),
            "middleware": len(middleware_contribs),
            "routers": len(all_routers),
        },
    )
    return app
