"""Closed role enumeration and boundary mapping for legacy role strings.

Role strings arriving from outside (request bodies, identity provider
metadata, older stored rows) are converted exactly once with
:func:`parse_role`. Everything past that boundary works with :class:`Role`.

Example:
    >>> parse_role("school")
    <Role.TENANT_ADMIN: 'tenant_admin'>
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType

from rollcall.foundation.domain.exceptions import ValidationError


class Role(StrEnum):
    """Membership role within a tenant."""

    TENANT_ADMIN = "tenant_admin"
    TEACHER = "teacher"
    STUDENT = "student"


# Older clients and stored metadata used these names.
LEGACY_ROLE_SYNONYMS: MappingProxyType[str, Role] = MappingProxyType(
    {
        "school": Role.TENANT_ADMIN,
        "school_admin": Role.TENANT_ADMIN,
        "admin": Role.TENANT_ADMIN,
        "teacher_supervisor": Role.TEACHER,
    }
)

# Roles allowed to issue invitations, and which roles each may invite.
INVITABLE_ROLES: MappingProxyType[Role, frozenset[Role]] = MappingProxyType(
    {
        Role.TENANT_ADMIN: frozenset({Role.TEACHER, Role.STUDENT}),
        Role.TEACHER: frozenset({Role.STUDENT}),
    }
)


def parse_role(raw: str) -> Role:
    """Map a raw role string (current or legacy) to a :class:`Role`.

    Args:
        raw: Role string, case-insensitive, surrounding whitespace ignored.

    Returns:
        The matching role.

    Raises:
        ValidationError: If the string names no known role.
    """
    key = raw.strip().lower()
    try:
        return Role(key)
    except ValueError:
        pass
    role = LEGACY_ROLE_SYNONYMS.get(key)
    if role is None:
        raise ValidationError("role", f"Unknown role: {raw!r}")
    return role
