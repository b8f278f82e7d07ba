"""Rollcall Domain Tenancy -- tenant registration, join codes and invitations."""

from rollcall.domain.tenancy.access_codes import (
    AccessCodeLifecycle,
    CodeVerification,
    IssuedCode,
    mask_code,
)
from rollcall.domain.tenancy.enrollment import (
    STUDENT_MANAGERS,
    EnrolledStudent,
    JoinedTenant,
    StudentEnrollment,
)
from rollcall.domain.tenancy.invitation import InvitationCode
from rollcall.domain.tenancy.invitations import (
    AcceptedInvitation,
    InvitationIssuer,
    IssuedInvitation,
)
from rollcall.domain.tenancy.ports import TenantStorePort
from rollcall.domain.tenancy.registration import (
    GatewayVerificationNotifier,
    RegistrationCommand,
    RegistrationResult,
    RegistrationSaga,
    VerificationNotifier,
)
from rollcall.domain.tenancy.settings import (
    CodePolicySettings,
    InvitationSettings,
    RegistrationSettings,
)
from rollcall.domain.tenancy.tenant import AccessCode, CodeReservation, Tenant, utcnow

__all__ = [
    "AcceptedInvitation",
    "AccessCode",
    "AccessCodeLifecycle",
    "CodePolicySettings",
    "CodeReservation",
    "CodeVerification",
    "EnrolledStudent",
    "GatewayVerificationNotifier",
    "InvitationCode",
    "InvitationIssuer",
    "InvitationSettings",
    "IssuedCode",
    "IssuedInvitation",
    "JoinedTenant",
    "RegistrationCommand",
    "RegistrationResult",
    "RegistrationSaga",
    "RegistrationSettings",
    "STUDENT_MANAGERS",
    "StudentEnrollment",
    "Tenant",
    "TenantStorePort",
    "VerificationNotifier",
    "mask_code",
    "utcnow",
]
