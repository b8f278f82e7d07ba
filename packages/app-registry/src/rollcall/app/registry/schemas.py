"""Request and response bodies for the registry API."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - pydantic resolves these at runtime
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, Field, SecretStr

from rollcall.domain.identity.records import AssignmentStatus  # noqa: TC001
from rollcall.foundation.domain.tenant_value_objects import (  # noqa: TC001
    AccessCodeStatus,
    InvitationMode,
    InvitationStatus,
)


class RegistrationRequest(BaseModel):
    tenant_name: str = Field(min_length=1, max_length=200)
    admin_email: str = Field(min_length=3, max_length=320)
    admin_secret: SecretStr
    admin_display_name: str | None = Field(default=None, max_length=200)


class RegistrationResponse(BaseModel):
    success: bool = True
    tenant_id: UUID
    code: str
    identity_id: UUID
    message: str


class IssuedCodeResponse(BaseModel):
    code: str
    expires_at: datetime | None


class AccessCodeResponse(BaseModel):
    code: str
    status: AccessCodeStatus
    generated_at: datetime
    expires_at: datetime | None
    generated_by: UUID | None


class CodeVerificationResponse(BaseModel):
    valid: bool
    tenant_id: UUID | None = None
    tenant_name: str | None = None


class InvitationRequest(BaseModel):
    """``role`` accepts legacy role names; they are mapped on arrival."""

    mode: InvitationMode = InvitationMode.CODE
    email: str | None = None
    role: str = "student"


class IssuedInvitationResponse(BaseModel):
    code: str
    expires_at: datetime
    mode: InvitationMode
    role: str


class InvitationResponse(BaseModel):
    code: str
    mode: InvitationMode
    role: str
    email: str | None
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
    accepted_by: UUID | None
    accepted_at: datetime | None


class AcceptInvitationRequest(BaseModel):
    """Optional profile details; the accepting identity comes from the request headers."""

    display_name: str | None = Field(default=None, max_length=200)
    email: str | None = None


class AcceptedInvitationResponse(BaseModel):
    tenant_id: UUID
    role: str


class JoinRequest(BaseModel):
    """Optional profile details for a student joining with the tenant's code."""

    display_name: str | None = Field(default=None, max_length=200)
    email: str | None = None


class JoinedResponse(BaseModel):
    tenant_id: UUID
    tenant_name: str
    status: AssignmentStatus


class StudentResponse(BaseModel):
    identity_id: UUID
    display_name: str
    email: str
    status: AssignmentStatus
    joined_at: datetime


class MembershipResponse(BaseModel):
    identity_id: UUID
    tenant_id: UUID
    role: str
    source: str
