"""FastAPI dependencies for the registry routes."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request

from rollcall.app.registry.services import RegistryServices
from rollcall.foundation.application import get_optional_context
from rollcall.foundation.domain.exceptions import AuthenticationError, ServiceUnavailableError


def get_services(request: Request) -> RegistryServices:
    services: RegistryServices | None = getattr(request.app.state, "registry_services", None)
    if services is None:
        raise ServiceUnavailableError("Registry services are not ready")
    return services


def require_identity() -> UUID:
    """The acting identity set by the request-context middleware.

    Raises:
        AuthenticationError: If the request carried no usable X-Identity-ID.
    """
    ctx = get_optional_context()
    if ctx is None or ctx.identity_id is None:
        raise AuthenticationError(
            "A valid X-Identity-ID header is required",
            error_code="MISSING_IDENTITY",
        )
    return ctx.identity_id


Services = Annotated[RegistryServices, Depends(get_services)]
ActingIdentity = Annotated[UUID, Depends(require_identity)]
