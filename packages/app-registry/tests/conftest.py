"""Shared fixtures for registry application tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from rollcall.app.registry import RegistrySettings, build_services, create_registry_app
from rollcall.domain.tenancy.infrastructure import InMemoryTenantStore
from rollcall.infra.auth import InMemoryIdentityGateway
from rollcall.infra.fastapi import AppSettings

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rollcall.app.registry import RegistryServices

# Infrastructure lifespans with external dependencies.
TEST_EXCLUDE_NAMES = frozenset({"observability", "persistence", "taskiq"})

MEMORY_SETTINGS = RegistrySettings(
    store_backend="memory", identity_backend="memory", notifier="gateway"
)


class Clock:
    """Settable clock; call it for the current time."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> Clock:
    return Clock(datetime(2026, 9, 1, 8, 0, tzinfo=UTC))


@pytest.fixture()
def store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture()
def gateway() -> InMemoryIdentityGateway:
    return InMemoryIdentityGateway()


@pytest.fixture()
def services(
    store: InMemoryTenantStore, gateway: InMemoryIdentityGateway, clock: Clock
) -> RegistryServices:
    return build_services(
        MEMORY_SETTINGS, store=store, gateway=gateway, instrument=None, clock=clock
    )


@pytest.fixture()
def client(services: RegistryServices) -> Iterator[TestClient]:
    app = create_registry_app(
        AppSettings(), services=services, exclude_names=TEST_EXCLUDE_NAMES
    )
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def registered(client: TestClient) -> dict[str, str]:
    """A registered tenant: response body of POST /registrations."""
    response = client.post(
        "/api/v1/registrations",
        json={
            "tenant_name": "Oak Elementary",
            "admin_email": "a@oak.edu",
            "admin_secret": "correct-horse",
            "admin_display_name": "Ada Oak",
        },
    )
    assert response.status_code == 201, response.text
    body: dict[str, str] = response.json()
    return body


@pytest.fixture()
def admin_headers(registered: dict[str, str]) -> dict[str, str]:
    return {"X-Identity-ID": registered["identity_id"]}
