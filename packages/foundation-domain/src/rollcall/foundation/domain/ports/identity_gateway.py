"""Port interface for the external identity provider.

The identity provider owns credentials, verification and sessions. This
subsystem only creates, looks up (one address at a time) and deletes
accounts, and asks the provider to send a verification link.

Implementations raise :class:`~rollcall.foundation.domain.exceptions.DuplicateIdentityError`
when the provider's own uniqueness constraint rejects an address, and
:class:`~rollcall.foundation.domain.exceptions.IdentityProviderUnavailableError`
for transport failures and timeouts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID


@runtime_checkable
class IdentityGatewayPort(Protocol):
    """Port for identity provider account administration."""

    async def create_identity(self, email: str, secret: str, metadata: dict[str, Any]) -> UUID:
        """Create an account and return its identifier.

        Args:
            email: Unique address keying the account.
            secret: Initial password. Never logged.
            metadata: Provider-side user metadata (display name, tenant refs).

        Raises:
            DuplicateIdentityError: If the address is already registered.
        """
        ...

    async def find_by_address(self, email: str) -> UUID | None:
        """Return the identifier of the account with this address, if any."""
        ...

    async def delete_identity(self, identity_id: UUID) -> None:
        """Delete an account. Deleting an absent account is not an error."""
        ...

    async def send_verification_link(self, identity_id: UUID, redirect_to: str) -> None:
        """Ask the provider to email a verification link."""
        ...
