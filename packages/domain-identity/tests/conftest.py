"""Shared fixtures for domain-identity tests."""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from rollcall.domain.identity.records import ProfileRecord, RoleAssignmentRecord
from rollcall.foundation.domain.roles import Role


@pytest.fixture()
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture()
def profile(tenant_id: UUID) -> ProfileRecord:
    """A teacher profile in the fixture tenant."""
    return ProfileRecord(
        identity_id=uuid4(),
        tenant_id=tenant_id,
        role=Role.TEACHER,
        display_name="Grace Hopper",
        email="grace@oak.edu",
    )


@pytest.fixture()
def teacher_assignment(profile: ProfileRecord) -> RoleAssignmentRecord:
    return RoleAssignmentRecord(
        identity_id=profile.identity_id,
        tenant_id=profile.tenant_id,
        role=Role.TEACHER,
    )
