"""In-process identity provider for local development and tests.

Keeps accounts in a dictionary keyed by identifier and enforces address
uniqueness the way the real provider does. Verification links are
recorded instead of sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from rollcall.foundation.domain.exceptions import DuplicateIdentityError

if TYPE_CHECKING:
    from uuid import UUID

logger = logging.getLogger(__name__)


class InMemoryIdentityGateway:
    """Identity gateway implementing IdentityGatewayPort without a network."""

    def __init__(self) -> None:
        self.identities: dict[UUID, str] = {}
        self.metadata: dict[UUID, dict[str, Any]] = {}
        self.verification_links: list[tuple[UUID, str]] = []

    async def create_identity(self, email: str, secret: str, metadata: dict[str, Any]) -> UUID:
        address = email.strip().lower()
        if address in self.identities.values():
            raise DuplicateIdentityError(address, source="identity_provider")
        identity_id = uuid4()
        self.identities[identity_id] = address
        self.metadata[identity_id] = dict(metadata)
        return identity_id

    async def find_by_address(self, email: str) -> UUID | None:
        address = email.strip().lower()
        return next((i for i, e in self.identities.items() if e == address), None)

    async def delete_identity(self, identity_id: UUID) -> None:
        self.identities.pop(identity_id, None)
        self.metadata.pop(identity_id, None)

    async def send_verification_link(self, identity_id: UUID, redirect_to: str) -> None:
        self.verification_links.append((identity_id, redirect_to))
        logger.info("verification_link_recorded", extra={"identity_id": str(identity_id)})
