"""Registry REST API.

Tenant provisioning, join codes, student enrollment, invitations and
membership lookup under ``/api/v1``. The acting identity comes from the
``X-Identity-ID`` header via the request-context middleware; roles are
always read from the store.
"""

from __future__ import annotations

from uuid import UUID  # noqa: TC003 - FastAPI needs UUID at runtime for path params

from fastapi import APIRouter

from rollcall.app.registry.dependencies import ActingIdentity, Services  # noqa: TC001
from rollcall.app.registry.schemas import (
    AcceptedInvitationResponse,
    AcceptInvitationRequest,
    AccessCodeResponse,
    CodeVerificationResponse,
    InvitationRequest,
    InvitationResponse,
    IssuedCodeResponse,
    IssuedInvitationResponse,
    JoinedResponse,
    JoinRequest,
    MembershipResponse,
    RegistrationRequest,
    RegistrationResponse,
    StudentResponse,
)
from rollcall.domain.identity.records import AssignmentStatus  # noqa: TC001
from rollcall.domain.tenancy import RegistrationCommand
from rollcall.foundation.domain.exceptions import NotFoundError
from rollcall.foundation.domain.roles import parse_role

router = APIRouter(prefix="/api/v1", tags=["registry"])


# -- Registration -------------------------------------------------------------


@router.post("/registrations", status_code=201)
async def register_tenant(body: RegistrationRequest, services: Services) -> RegistrationResponse:
    """Provision a tenant together with its first admin identity."""
    command = RegistrationCommand.from_raw(
        tenant_name=body.tenant_name,
        admin_email=body.admin_email,
        admin_secret=body.admin_secret.get_secret_value(),
        admin_display_name=body.admin_display_name,
    )
    result = await services.registration.register(command)
    return RegistrationResponse(
        tenant_id=result.tenant_id,
        code=result.code,
        identity_id=result.identity_id,
        message=result.message,
    )


# -- Join codes ---------------------------------------------------------------


@router.post("/tenants/{tenant_id}/codes:regenerate")
async def regenerate_code(
    tenant_id: UUID, services: Services, identity_id: ActingIdentity
) -> IssuedCodeResponse:
    issued = await services.codes.regenerate(tenant_id, requested_by=identity_id)
    return IssuedCodeResponse(code=issued.code, expires_at=issued.expires_at)


@router.get("/tenants/{tenant_id}/codes")
async def list_codes(
    tenant_id: UUID, services: Services, identity_id: ActingIdentity
) -> list[AccessCodeResponse]:
    """Code history for a tenant, newest first."""
    codes = await services.codes.list_codes(tenant_id, requested_by=identity_id)
    return [
        AccessCodeResponse(
            code=c.code,
            status=c.status,
            generated_at=c.generated_at,
            expires_at=c.expires_at,
            generated_by=c.generated_by,
        )
        for c in codes
    ]


@router.get("/codes/{code}")
async def verify_code(code: str, services: Services) -> CodeVerificationResponse:
    verification = await services.codes.verify(code)
    return CodeVerificationResponse(
        valid=verification.valid,
        tenant_id=verification.tenant_id,
        tenant_name=verification.tenant_name,
    )


# -- Students -----------------------------------------------------------------


@router.post("/codes/{code}/join", status_code=201)
async def join_with_code(
    code: str,
    services: Services,
    identity_id: ActingIdentity,
    body: JoinRequest | None = None,
) -> JoinedResponse:
    """Join the code's tenant as a student awaiting approval."""
    body = body or JoinRequest()
    joined = await services.enrollment.join_with_code(
        code, identity_id, email=body.email, display_name=body.display_name
    )
    return JoinedResponse(
        tenant_id=joined.tenant_id, tenant_name=joined.tenant_name, status=joined.status
    )


@router.get("/tenants/{tenant_id}/students")
async def list_students(
    tenant_id: UUID,
    services: Services,
    identity_id: ActingIdentity,
    status: AssignmentStatus | None = None,
) -> list[StudentResponse]:
    students = await services.enrollment.list_students(tenant_id, identity_id, status)
    return [
        StudentResponse(
            identity_id=s.identity_id,
            display_name=s.display_name,
            email=s.email,
            status=s.status,
            joined_at=s.joined_at,
        )
        for s in students
    ]


@router.post("/tenants/{tenant_id}/students/{student_id}:approve")
async def approve_student(
    tenant_id: UUID, student_id: UUID, services: Services, identity_id: ActingIdentity
) -> StudentResponse:
    approved = await services.enrollment.approve(tenant_id, student_id, identity_id)
    return StudentResponse(
        identity_id=approved.identity_id,
        display_name=approved.display_name,
        email=approved.email,
        status=approved.status,
        joined_at=approved.joined_at,
    )


@router.delete("/tenants/{tenant_id}/students/{student_id}", status_code=204)
async def revoke_student(
    tenant_id: UUID, student_id: UUID, services: Services, identity_id: ActingIdentity
) -> None:
    """Remove the student from the tenant; their identity is kept."""
    await services.enrollment.revoke(tenant_id, student_id, identity_id)


# -- Invitations --------------------------------------------------------------


@router.post("/tenants/{tenant_id}/invitations", status_code=201)
async def issue_invitation(
    tenant_id: UUID,
    body: InvitationRequest,
    services: Services,
    identity_id: ActingIdentity,
) -> IssuedInvitationResponse:
    issued = await services.invitations.issue(
        tenant_id,
        identity_id,
        body.mode,
        email=body.email,
        role=parse_role(body.role),
    )
    return IssuedInvitationResponse(
        code=issued.code,
        expires_at=issued.expires_at,
        mode=issued.mode,
        role=issued.role.value,
    )


@router.get("/tenants/{tenant_id}/invitations")
async def list_invitations(
    tenant_id: UUID, services: Services, identity_id: ActingIdentity
) -> list[InvitationResponse]:
    invitations = await services.invitations.list_invitations(tenant_id, identity_id)
    return [
        InvitationResponse(
            code=i.code,
            mode=i.mode,
            role=i.role.value,
            email=i.email,
            status=i.status,
            created_at=i.created_at,
            expires_at=i.expires_at,
            accepted_by=i.accepted_by,
            accepted_at=i.accepted_at,
        )
        for i in invitations
    ]


@router.post("/invitations/{code}/accept")
async def accept_invitation(
    code: str,
    services: Services,
    identity_id: ActingIdentity,
    body: AcceptInvitationRequest | None = None,
) -> AcceptedInvitationResponse:
    """Join the invitation's tenant as the identity making the request."""
    body = body or AcceptInvitationRequest()
    accepted = await services.invitations.accept(
        code, identity_id, display_name=body.display_name, email=body.email
    )
    return AcceptedInvitationResponse(tenant_id=accepted.tenant_id, role=accepted.role.value)


# -- Membership ---------------------------------------------------------------


@router.get("/identities/{identity_id}/membership")
async def get_membership(identity_id: UUID, services: Services) -> MembershipResponse:
    """Tenant and role of an identity; may be served from cache during outages."""
    resolved = await services.memberships.lookup(identity_id)
    membership = resolved.value
    if membership is None:
        raise NotFoundError("Membership", identity_id)
    return MembershipResponse(
        identity_id=membership.identity_id,
        tenant_id=membership.tenant_id,
        role=membership.role.value,
        source=resolved.source.value,
    )
