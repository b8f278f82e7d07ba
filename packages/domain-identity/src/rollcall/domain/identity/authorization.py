"""Authorization decided from stored role assignments.

Callers never get to assert their own role. Every privileged operation
reads the acting identity's RoleAssignmentRecord for the tenant in question
straight from the store, with no cache in between.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from rollcall.foundation.domain.exceptions import UnauthorizedError

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID

    from rollcall.domain.identity.records import RoleAssignmentRecord
    from rollcall.foundation.domain.roles import Role

logger = logging.getLogger(__name__)


class AssignmentLookup(Protocol):
    """Read access to role assignments."""

    async def get_role_assignment(
        self, identity_id: UUID, tenant_id: UUID
    ) -> RoleAssignmentRecord | None: ...


def _permits(
    record: RoleAssignmentRecord, roles: Collection[Role], *, allow_supervisor: bool
) -> bool:
    if not record.is_active:
        return False
    return record.role in roles or (allow_supervisor and record.supervisor)


async def require_assignment(
    assignments: AssignmentLookup,
    identity_id: UUID,
    tenant_id: UUID,
    *,
    action: str,
    roles: Collection[Role] = (),
    allow_supervisor: bool = False,
) -> RoleAssignmentRecord:
    """Return the identity's active assignment if it permits ``action``.

    Args:
        assignments: Assignment store.
        identity_id: Acting identity.
        tenant_id: Tenant the action targets.
        action: Action name for errors and logs.
        roles: Roles that permit the action.
        allow_supervisor: Also permit supervisors whatever their role.

    Raises:
        UnauthorizedError: If no active assignment permits the action.
    """
    record = await assignments.get_role_assignment(identity_id, tenant_id)
    if record is None or not _permits(record, roles, allow_supervisor=allow_supervisor):
        logger.info(
            "authorization_denied",
            extra={
                "action": action,
                "identity_id": str(identity_id),
                "tenant_id": str(tenant_id),
                "role": record.role.value if record is not None else None,
            },
        )
        raise UnauthorizedError(action, identity_id=str(identity_id), tenant_id=str(tenant_id))
    return record
