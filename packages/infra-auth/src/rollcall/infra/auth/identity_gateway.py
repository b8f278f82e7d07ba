"""Async HTTP adapter for a GoTrue-compatible identity provider admin API.

Implements IdentityGatewayPort from rollcall.foundation.domain.ports using
the service-role key. Endpoints used:

- ``POST   /admin/users``           create an account (unconfirmed)
- ``GET    /admin/users?filter=``   look an account up by address
- ``GET    /admin/users/{id}``      read an account (for its address)
- ``DELETE /admin/users/{id}``      delete an account
- ``POST   /resend``                send the signup verification link

Failure mapping:
- 409, or 422 saying the address is taken -> DuplicateIdentityError
- other 4xx -> ValidationError (the provider rejected the input)
- 5xx, timeouts, transport errors -> IdentityProviderUnavailableError
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

import httpx

from rollcall.foundation.domain.exceptions import (
    DuplicateIdentityError,
    IdentityProviderUnavailableError,
    ValidationError,
)

if TYPE_CHECKING:
    from rollcall.infra.auth.settings import IdentitySettings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_PAGE_SIZE = 50
_MAX_PAGES = 200
_DUPLICATE_ERROR_CODES = frozenset({"email_exists", "user_already_exists"})


def _error_body(response: httpx.Response) -> dict[str, Any]:
    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("application/json"):
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(body: dict[str, Any]) -> str:
    for key in ("msg", "message", "error_description", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _is_duplicate(response: httpx.Response, body: dict[str, Any]) -> bool:
    if response.status_code == 409:
        return True
    if response.status_code != 422:
        return False
    if body.get("error_code") in _DUPLICATE_ERROR_CODES:
        return True
    return "already" in _error_message(body).lower()


class HttpIdentityGateway:
    """Identity provider admin client implementing IdentityGatewayPort.

    Supports both shared and owned httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused across calls (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first use.
      Call :meth:`aclose` to release it.

    Args:
        base_url: Auth API root (e.g. ``https://project.supabase.co/auth/v1``).
        service_key: Service-role key; sent as ``apikey`` and bearer token.
        timeout: Per-request timeout in seconds.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    @classmethod
    def from_settings(
        cls, settings: IdentitySettings, client: httpx.AsyncClient | None = None
    ) -> HttpIdentityGateway:
        return cls(
            base_url=settings.base_url,
            service_key=settings.service_key.get_secret_value(),
            timeout=settings.timeout_seconds,
            client=client,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal client if this gateway owns it."""
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, translating transport failures and 5xx responses."""
        client = self._get_client()
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            logger.warning("identity_provider_timeout", extra={"operation": operation})
            raise IdentityProviderUnavailableError(operation, "timeout") from exc
        except httpx.TransportError as exc:
            logger.warning(
                "identity_provider_transport_error",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise IdentityProviderUnavailableError(operation, type(exc).__name__) from exc

        if response.status_code >= 500:
            logger.warning(
                "identity_provider_server_error",
                extra={"operation": operation, "status": response.status_code},
            )
            raise IdentityProviderUnavailableError(operation, f"HTTP {response.status_code}")
        return response

    @staticmethod
    def _raise_for_client_error(operation: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = _error_body(response)
        message = _error_message(body) or f"HTTP {response.status_code}"
        logger.info(
            "identity_provider_rejected",
            extra={"operation": operation, "status": response.status_code},
        )
        raise ValidationError("identity", message, status=response.status_code)

    async def create_identity(self, email: str, secret: str, metadata: dict[str, Any]) -> UUID:
        response = await self._request(
            "create_identity",
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": secret,
                "email_confirm": False,
                "user_metadata": metadata,
            },
        )
        body = _error_body(response) if not response.is_success else {}
        if not response.is_success and _is_duplicate(response, body):
            raise DuplicateIdentityError(email, source="identity_provider")
        self._raise_for_client_error("create_identity", response)

        payload = response.json()
        # Some deployments wrap the user object.
        user = payload.get("user", payload)
        identity_id = UUID(str(user["id"]))
        logger.info("identity_created", extra={"identity_id": str(identity_id)})
        return identity_id

    async def find_by_address(self, email: str) -> UUID | None:
        wanted = email.strip().lower()
        # The filter is a substring match; only an exact address counts, and it
        # may sit on any page.
        for page in range(1, _MAX_PAGES + 1):
            response = await self._request(
                "find_by_address",
                "GET",
                "/admin/users",
                params={"filter": wanted, "page": page, "per_page": _PAGE_SIZE},
            )
            self._raise_for_client_error("find_by_address", response)
            users = response.json().get("users", [])
            for user in users:
                if str(user.get("email", "")).lower() == wanted:
                    return UUID(str(user["id"]))
            if len(users) < _PAGE_SIZE:
                return None
        logger.warning("identity_lookup_truncated", extra={"pages": _MAX_PAGES})
        return None

    async def delete_identity(self, identity_id: UUID) -> None:
        response = await self._request("delete_identity", "DELETE", f"/admin/users/{identity_id}")
        if response.status_code == 404:
            return
        self._raise_for_client_error("delete_identity", response)
        logger.info("identity_deleted", extra={"identity_id": str(identity_id)})

    async def send_verification_link(self, identity_id: UUID, redirect_to: str) -> None:
        response = await self._request(
            "send_verification_link", "GET", f"/admin/users/{identity_id}"
        )
        self._raise_for_client_error("send_verification_link", response)
        email = response.json().get("email")
        if not email:
            raise ValidationError("identity", "Identity has no address to verify")

        response = await self._request(
            "send_verification_link",
            "POST",
            "/resend",
            params={"redirect_to": redirect_to},
            json={"type": "signup", "email": email},
        )
        self._raise_for_client_error("send_verification_link", response)
