"""Aggregated health check endpoint.

Checks are plain coroutine functions registered on the application with
:func:`register_health_check`; each one raises when its subsystem is
unhealthy. ``GET /healthz`` runs them all and answers 200 when every check
passes, 503 otherwise.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI

    HealthCheck = Callable[[], Awaitable[None]]

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def register_health_check(app: FastAPI, name: str, check: HealthCheck) -> None:
    """Add ``check`` under ``name``; a later registration replaces an earlier one."""
    checks: dict[str, HealthCheck] = getattr(app.state, "health_checks", {})
    checks[name] = check
    app.state.health_checks = checks


@router.get("/healthz")
async def healthz(request: Request) -> Any:
    checks: dict[str, HealthCheck] = getattr(request.app.state, "health_checks", {})
    results: dict[str, dict[str, str]] = {}
    for name, check in checks.items():
        try:
            await check()
        except Exception as exc:
            logger.warning(
                "health_check_failed",
                extra={"check": name, "error_type": type(exc).__name__},
            )
            results[name] = {"status": "error", "detail": type(exc).__name__}
        else:
            results[name] = {"status": "ok"}

    all_ok = all(r["status"] == "ok" for r in results.values())
    return JSONResponse(
        content={"status": "ok" if all_ok else "degraded", "checks": results},
        status_code=200 if all_ok else 503,
    )
