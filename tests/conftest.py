"""Shared fixtures for cross-package integration tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from rollcall.app.registry import RegistrySettings, build_services, create_registry_app
from rollcall.app.registry.settings import get_registry_settings
from rollcall.domain.tenancy.infrastructure import InMemoryTenantStore
from rollcall.infra.auth import InMemoryIdentityGateway
from rollcall.infra.fastapi import AppSettings
from rollcall.infra.persistence import get_database_manager

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from rollcall.app.registry import RegistryServices

# Entry-point names excluded in integration tests (no external services).
TEST_EXCLUDE_NAMES = frozenset({"observability", "persistence", "taskiq"})


@pytest.fixture()
def store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture()
def gateway() -> InMemoryIdentityGateway:
    return InMemoryIdentityGateway()


@pytest.fixture()
def services(store: InMemoryTenantStore, gateway: InMemoryIdentityGateway) -> RegistryServices:
    return build_services(
        RegistrySettings(store_backend="memory", identity_backend="memory"),
        store=store,
        gateway=gateway,
        instrument=None,
    )


@pytest.fixture()
def client(services: RegistryServices) -> Iterator[TestClient]:
    """TestClient for the registry app (lifespan hooks executed)."""
    app = create_registry_app(AppSettings(), services=services, exclude_names=TEST_EXCLUDE_NAMES)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def sql_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Registry app configured from the environment against a SQLite file."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/rollcall.db")
    monkeypatch.setenv("DATABASE_CREATE_TABLES", "true")
    monkeypatch.setenv("REGISTRY_STORE_BACKEND", "sql")
    monkeypatch.setenv("REGISTRY_IDENTITY_BACKEND", "memory")
    monkeypatch.setenv("REGISTRY_NOTIFIER", "gateway")
    get_database_manager.cache_clear()
    get_registry_settings.cache_clear()

    app = create_registry_app(exclude_names=frozenset({"observability", "taskiq"}))
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    get_database_manager.cache_clear()
    get_registry_settings.cache_clear()


@pytest.fixture()
def break_method(monkeypatch: pytest.MonkeyPatch) -> Callable[[object, str, BaseException], None]:
    """Returns a helper making ``target.name`` raise ``error`` when awaited."""

    def breaker(target: object, name: str, error: BaseException) -> None:
        async def failing(*args: Any, **kwargs: Any) -> Any:
            raise error

        monkeypatch.setattr(target, name, failing)

    return breaker


@pytest.fixture()
def registration() -> dict[str, str]:
    return {
        "tenant_name": "Oak Elementary",
        "admin_email": "a@oak.edu",
        "admin_secret": "correct-horse",
        "admin_display_name": "Ada Oak",
    }
