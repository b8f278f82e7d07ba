"""Rollcall Domain Identity -- profiles, role assignments and memberships."""

from rollcall.domain.identity.authorization import AssignmentLookup, require_assignment
from rollcall.domain.identity.identity_check import (
    ProfileByEmailLookup,
    ensure_identity_available,
)
from rollcall.domain.identity.membership import (
    Membership,
    MembershipCache,
    MembershipCacheSettings,
    MembershipResolver,
    ProfileLookup,
)
from rollcall.domain.identity.records import (
    AssignmentStatus,
    ProfileRecord,
    RoleAssignmentRecord,
)

__all__ = [
    "AssignmentLookup",
    "AssignmentStatus",
    "Membership",
    "MembershipCache",
    "MembershipCacheSettings",
    "MembershipResolver",
    "ProfileByEmailLookup",
    "ProfileLookup",
    "ProfileRecord",
    "RoleAssignmentRecord",
    "ensure_identity_available",
    "require_assignment",
]
