"""Advisory duplicate-identity check run before provisioning anything.

The check races with concurrent registrations for the same address. It is
a fast path that spares the saga from creating and then deleting resources
for the common case; the identity provider's own uniqueness constraint
stays the source of truth and may still reject the address later.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from rollcall.foundation.domain.exceptions import DuplicateIdentityError

if TYPE_CHECKING:
    from rollcall.domain.identity.records import ProfileRecord
    from rollcall.foundation.domain.ports import IdentityGatewayPort
    from rollcall.foundation.domain.user_value_objects import Email

logger = logging.getLogger(__name__)


class ProfileByEmailLookup(Protocol):
    """Read access to profiles by address."""

    async def find_profile_by_email(self, email: str) -> ProfileRecord | None: ...


async def ensure_identity_available(
    gateway: IdentityGatewayPort,
    profiles: ProfileByEmailLookup,
    email: Email,
) -> None:
    """Reject an address that already has an identity or a profile.

    Raises:
        DuplicateIdentityError: If the identity provider knows the address,
            or a profile in any tenant already carries it.
        IdentityProviderUnavailableError: If the provider cannot answer.
        StoreUnavailableError: If the store cannot answer.
    """
    existing_identity = await gateway.find_by_address(email.value)
    if existing_identity is not None:
        logger.info("identity_check_rejected", extra={"reason": "identity_exists"})
        raise DuplicateIdentityError(email.value, source="identity_provider")

    profile = await profiles.find_profile_by_email(email.value)
    if profile is not None:
        logger.info(
            "identity_check_rejected",
            extra={"reason": "profile_exists", "tenant_id": str(profile.tenant_id)},
        )
        raise DuplicateIdentityError(email.value, source="profile")
