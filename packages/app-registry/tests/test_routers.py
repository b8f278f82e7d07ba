"""HTTP tests for the registry routes, backed by in-memory adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from rollcall.app.registry import create_registry_app
from rollcall.infra.fastapi import AppSettings

if TYPE_CHECKING:
    from rollcall.app.registry import RegistryServices
    from rollcall.domain.tenancy.infrastructure import InMemoryTenantStore
    from rollcall.infra.auth import InMemoryIdentityGateway

REGISTRATION = {
    "tenant_name": "Oak Elementary",
    "admin_email": "a@oak.edu",
    "admin_secret": "correct-horse",
}


def _invite(
    client: TestClient,
    tenant_id: str,
    headers: dict[str, str],
    **body: str,
) -> dict[str, str]:
    response = client.post(f"/api/v1/tenants/{tenant_id}/invitations", json=body, headers=headers)
    assert response.status_code == 201, response.text
    result: dict[str, str] = response.json()
    return result


def _accept(client: TestClient, code: str, identity_id: UUID, **body: str) -> Any:
    return client.post(
        f"/api/v1/invitations/{code}/accept",
        json=body,
        headers={"X-Identity-ID": str(identity_id)},
    )


def _join(client: TestClient, code: str, identity_id: UUID, **body: str) -> Any:
    return client.post(
        f"/api/v1/codes/{code}/join",
        json=body,
        headers={"X-Identity-ID": str(identity_id)},
    )


@pytest.mark.unit
class TestRegistration:
    def test_success(
        self,
        registered: dict[str, str],
        store: InMemoryTenantStore,
        gateway: InMemoryIdentityGateway,
    ) -> None:
        assert registered["success"] is True
        assert len(registered["code"]) == 8
        assert "verify your account" in registered["message"]
        tenant = store.tenants[UUID(registered["tenant_id"])]
        assert tenant.name == "Oak Elementary"
        assert tenant.active_code == registered["code"]
        assert gateway.verification_links == [
            (UUID(registered["identity_id"]), "http://localhost:3000/auth/verified")
        ]

    def test_duplicate_email(
        self, client: TestClient, registered: dict[str, str], store: InMemoryTenantStore
    ) -> None:
        response = client.post("/api/v1/registrations", json=REGISTRATION)

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "/errors/duplicate-identity"
        assert body["error_code"] == "DUPLICATE_IDENTITY"
        assert body["affordance"] == "login"
        assert len(store.tenants) == 1

    def test_short_secret_is_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/registrations", json={**REGISTRATION, "admin_secret": "short"}
        )
        assert response.status_code == 422
        assert response.json()["type"] == "/errors/validation-error"

    def test_secret_never_echoed(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/registrations", json={**REGISTRATION, "admin_secret": "s3cr3"}
        )
        assert response.status_code == 422
        assert "s3cr3" not in response.text

    def test_missing_fields(self, client: TestClient) -> None:
        response = client.post("/api/v1/registrations", json={"tenant_name": "Oak"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "REQUEST_VALIDATION_ERROR"


@pytest.mark.unit
class TestJoinCodes:
    def test_verify_registration_code(
        self, client: TestClient, registered: dict[str, str]
    ) -> None:
        body = client.get(f"/api/v1/codes/{registered['code'].lower()}").json()
        assert body == {
            "valid": True,
            "tenant_id": registered["tenant_id"],
            "tenant_name": "Oak Elementary",
        }

    @pytest.mark.parametrize("code", ["ZZZZZZZZ", "O0I1L", "not a code"])
    def test_unknown_or_malformed_code(self, client: TestClient, code: str) -> None:
        body = client.get(f"/api/v1/codes/{code}").json()
        assert body == {"valid": False, "tenant_id": None, "tenant_name": None}

    def test_regenerate_invalidates_previous(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
    ) -> None:
        tenant_id, old_code = registered["tenant_id"], registered["code"]

        response = client.post(
            f"/api/v1/tenants/{tenant_id}/codes:regenerate", headers=admin_headers
        )

        assert response.status_code == 200
        new_code = response.json()["code"]
        assert new_code != old_code
        assert response.json()["expires_at"] is not None
        assert client.get(f"/api/v1/codes/{old_code}").json()["valid"] is False
        assert client.get(f"/api/v1/codes/{new_code}").json()["tenant_id"] == tenant_id

        history = client.get(f"/api/v1/tenants/{tenant_id}/codes", headers=admin_headers).json()
        assert [(c["code"], c["status"]) for c in history] == [
            (new_code, "active"),
            (old_code, "revoked"),
        ]
        assert history[0]["generated_by"] == registered["identity_id"]

    def test_regenerate_requires_identity(
        self, client: TestClient, registered: dict[str, str]
    ) -> None:
        response = client.post(f"/api/v1/tenants/{registered['tenant_id']}/codes:regenerate")
        assert response.status_code == 401
        assert response.json()["error_code"] == "MISSING_IDENTITY"

    def test_regenerate_by_stranger_forbidden(
        self, client: TestClient, registered: dict[str, str]
    ) -> None:
        response = client.post(
            f"/api/v1/tenants/{registered['tenant_id']}/codes:regenerate",
            headers={"X-Identity-ID": str(uuid4())},
        )
        assert response.status_code == 403
        assert response.json()["type"] == "/errors/forbidden"

    def test_regeneration_rate_limit(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
    ) -> None:
        url = f"/api/v1/tenants/{registered['tenant_id']}/codes:regenerate"
        for _ in range(5):
            assert client.post(url, headers=admin_headers).status_code == 200

        response = client.post(url, headers=admin_headers)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3600"


@pytest.mark.unit
class TestStudentEnrollment:
    def test_join_creates_pending_student(
        self, client: TestClient, registered: dict[str, str], store: InMemoryTenantStore
    ) -> None:
        student = uuid4()

        response = _join(client, registered["code"].lower(), student, email="Sam@Oak.edu")

        assert response.status_code == 201
        assert response.json() == {
            "tenant_id": registered["tenant_id"],
            "tenant_name": "Oak Elementary",
            "status": "pending",
        }
        record = store.role_assignments[(student, UUID(registered["tenant_id"]))]
        assert record.status == "pending"
        assert not record.is_active
        assert store.profiles[student].email == "sam@oak.edu"

    def test_join_requires_identity_header(
        self, client: TestClient, registered: dict[str, str], store: InMemoryTenantStore
    ) -> None:
        response = client.post(f"/api/v1/codes/{registered['code']}/join", json={})
        assert response.status_code == 401
        assert len(store.profiles) == 1

    def test_join_with_retired_code(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        client.post(
            f"/api/v1/tenants/{registered['tenant_id']}/codes:regenerate", headers=admin_headers
        )
        response = _join(client, registered["code"], uuid4())
        assert response.status_code == 410

    def test_join_twice_conflicts(self, client: TestClient, registered: dict[str, str]) -> None:
        student = uuid4()
        _join(client, registered["code"], student)
        response = _join(client, registered["code"], student)
        assert response.status_code == 409
        assert response.json()["error_code"] == "DUPLICATE_IDENTITY"

    def test_admin_lists_and_approves(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        tenant_id = registered["tenant_id"]
        student = uuid4()
        _join(client, registered["code"], student, display_name="Sam")
        students_url = f"/api/v1/tenants/{tenant_id}/students"

        pending = client.get(students_url, params={"status": "pending"}, headers=admin_headers)
        assert [(s["identity_id"], s["display_name"]) for s in pending.json()] == [
            (str(student), "Sam")
        ]

        response = client.post(f"{students_url}/{student}:approve", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        after = client.get(students_url, params={"status": "pending"}, headers=admin_headers)
        assert after.json() == []
        again = client.post(f"{students_url}/{student}:approve", headers=admin_headers)
        assert again.json()["status"] == "active"

    def test_teacher_approves_but_pending_student_cannot(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        tenant_id = registered["tenant_id"]
        code = _invite(client, tenant_id, admin_headers, mode="code", role="teacher")["code"]
        teacher, first, second = uuid4(), uuid4(), uuid4()
        _accept(client, code, teacher)
        _join(client, registered["code"], first)
        _join(client, registered["code"], second)
        students_url = f"/api/v1/tenants/{tenant_id}/students"

        denied = client.post(
            f"{students_url}/{second}:approve", headers={"X-Identity-ID": str(first)}
        )
        approved = client.post(
            f"{students_url}/{second}:approve", headers={"X-Identity-ID": str(teacher)}
        )

        assert denied.status_code == 403
        assert approved.status_code == 200

    def test_staff_of_another_tenant_cannot_approve(
        self, client: TestClient, registered: dict[str, str]
    ) -> None:
        other = client.post(
            "/api/v1/registrations",
            json={
                "tenant_name": "Elm Middle",
                "admin_email": "e@elm.edu",
                "admin_secret": "correct-horse",
            },
        ).json()
        student = uuid4()
        _join(client, registered["code"], student)

        response = client.post(
            f"/api/v1/tenants/{registered['tenant_id']}/students/{student}:approve",
            headers={"X-Identity-ID": other["identity_id"]},
        )

        assert response.status_code == 403

    def test_approving_a_non_student_is_not_found(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        tenant_id = registered["tenant_id"]
        response = client.post(
            f"/api/v1/tenants/{tenant_id}/students/{registered['identity_id']}:approve",
            headers=admin_headers,
        )
        assert response.status_code == 404

    def test_revoke_removes_student_and_allows_rejoin(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        store: InMemoryTenantStore,
    ) -> None:
        tenant_id = registered["tenant_id"]
        student = uuid4()
        _join(client, registered["code"], student)
        assert client.get(f"/api/v1/identities/{student}/membership").status_code == 200

        response = client.delete(
            f"/api/v1/tenants/{tenant_id}/students/{student}", headers=admin_headers
        )

        assert response.status_code == 204
        assert student not in store.profiles
        assert (student, UUID(tenant_id)) not in store.role_assignments
        assert client.get(f"/api/v1/identities/{student}/membership").status_code == 404
        assert _join(client, registered["code"], student).status_code == 201

    def test_revoke_requires_staff(
        self, client: TestClient, registered: dict[str, str], store: InMemoryTenantStore
    ) -> None:
        student = uuid4()
        _join(client, registered["code"], student)

        response = client.delete(
            f"/api/v1/tenants/{registered['tenant_id']}/students/{student}",
            headers={"X-Identity-ID": str(student)},
        )

        assert response.status_code == 403
        assert student in store.profiles


@pytest.mark.unit
class TestInvitations:
    def test_issue_and_accept_code_invitation(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        store: InMemoryTenantStore,
    ) -> None:
        tenant_id = registered["tenant_id"]
        issued = _invite(client, tenant_id, admin_headers, mode="code")
        assert issued["role"] == "student"
        student = uuid4()

        response = _accept(client, issued["code"], student, display_name="Sam")

        assert response.status_code == 200
        assert response.json() == {"tenant_id": tenant_id, "role": "student"}
        assert store.profiles[student].display_name == "Sam"

    def test_second_acceptance_conflicts(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        store: InMemoryTenantStore,
    ) -> None:
        code = _invite(client, registered["tenant_id"], admin_headers, mode="code")["code"]
        first, second = uuid4(), uuid4()
        _accept(client, code, first)

        response = _accept(client, code, second)

        assert response.status_code == 409
        assert response.json()["type"] == "/errors/already-accepted"
        assert second not in store.profiles

    def test_acceptance_requires_identity_header(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        store: InMemoryTenantStore,
    ) -> None:
        code = _invite(
            client, registered["tenant_id"], admin_headers, mode="code", role="teacher"
        )["code"]
        claimed = uuid4()

        response = client.post(
            f"/api/v1/invitations/{code}/accept", json={"identity_id": str(claimed)}
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "MISSING_IDENTITY"
        assert claimed not in store.profiles
        assert store.invitations[code].status == "pending"

    def test_body_identity_is_ignored(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        store: InMemoryTenantStore,
    ) -> None:
        code = _invite(client, registered["tenant_id"], admin_headers, mode="code")["code"]
        caller, claimed = uuid4(), uuid4()

        response = client.post(
            f"/api/v1/invitations/{code}/accept",
            json={"identity_id": str(claimed)},
            headers={"X-Identity-ID": str(caller)},
        )

        assert response.status_code == 200
        assert caller in store.profiles
        assert claimed not in store.profiles

    def test_legacy_role_name_is_mapped(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        issued = _invite(
            client, registered["tenant_id"], admin_headers, mode="code", role="teacher_supervisor"
        )
        assert issued["role"] == "teacher"

    def test_unknown_role_rejected(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        response = client.post(
            f"/api/v1/tenants/{registered['tenant_id']}/invitations",
            json={"mode": "code", "role": "principal"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_teacher_cannot_invite_teachers(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        tenant_id = registered["tenant_id"]
        code = _invite(client, tenant_id, admin_headers, mode="code", role="teacher")["code"]
        teacher = uuid4()
        _accept(client, code, teacher)
        teacher_headers = {"X-Identity-ID": str(teacher)}

        response = client.post(
            f"/api/v1/tenants/{tenant_id}/invitations",
            json={"mode": "code", "role": "teacher"},
            headers=teacher_headers,
        )

        assert response.status_code == 403
        assert _invite(client, tenant_id, teacher_headers, mode="code")["role"] == "student"

    def test_email_invitation_bound_to_identity(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        gateway: InMemoryIdentityGateway,
    ) -> None:
        invited = uuid4()
        gateway.identities[invited] = "t@oak.edu"
        code = _invite(
            client, registered["tenant_id"], admin_headers, mode="email", email="t@oak.edu"
        )["code"]

        wrong = _accept(client, code, uuid4())
        right = _accept(client, code, invited)

        assert wrong.status_code == 403
        assert right.status_code == 200

    def test_email_mode_requires_address(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        response = client.post(
            f"/api/v1/tenants/{registered['tenant_id']}/invitations",
            json={"mode": "email"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    @pytest.mark.parametrize(("elapsed", "status"), [(-1, 200), (1, 410)])
    def test_expiry_boundary(
        self,
        client: TestClient,
        registered: dict[str, str],
        admin_headers: dict[str, str],
        clock: Any,
        elapsed: int,
        status: int,
    ) -> None:
        code = _invite(client, registered["tenant_id"], admin_headers, mode="code")["code"]
        clock.advance(days=7, seconds=elapsed)

        response = _accept(client, code, uuid4())

        assert response.status_code == status

    def test_list_invitations(
        self, client: TestClient, registered: dict[str, str], admin_headers: dict[str, str]
    ) -> None:
        tenant_id = registered["tenant_id"]
        codes = {_invite(client, tenant_id, admin_headers, mode="code")["code"] for _ in range(2)}

        listed = client.get(f"/api/v1/tenants/{tenant_id}/invitations", headers=admin_headers)

        assert listed.status_code == 200
        assert {i["code"] for i in listed.json()} == codes
        assert {i["status"] for i in listed.json()} == {"pending"}

    def test_list_requires_identity(self, client: TestClient, registered: dict[str, str]) -> None:
        response = client.get(f"/api/v1/tenants/{registered['tenant_id']}/invitations")
        assert response.status_code == 401


@pytest.mark.unit
class TestMembership:
    def test_registered_admin(self, client: TestClient, registered: dict[str, str]) -> None:
        body = client.get(f"/api/v1/identities/{registered['identity_id']}/membership").json()
        assert body == {
            "identity_id": registered["identity_id"],
            "tenant_id": registered["tenant_id"],
            "role": "tenant_admin",
            "source": "primary",
        }

    def test_unknown_identity(self, client: TestClient) -> None:
        response = client.get(f"/api/v1/identities/{uuid4()}/membership")
        assert response.status_code == 404


@pytest.mark.unit
class TestAppSurface:
    def test_healthz(self, client: TestClient) -> None:
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_services_not_ready_without_lifespan(self, services: RegistryServices) -> None:
        app = create_registry_app(AppSettings(), services=services, discover_entry_points=False)
        response = TestClient(app, raise_server_exceptions=False).get("/api/v1/codes/ABCDEFGH")
        assert response.status_code == 503

    def test_correlation_header_echoed(self, client: TestClient) -> None:
        response = client.get("/api/v1/codes/ABCDEFGH", headers={"X-Correlation-ID": "corr-7"})
        assert response.headers["X-Correlation-ID"] == "corr-7"
