"""Value objects for identities and their profiles.

Immutable, validated domain primitives. All validation occurs at construction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True, slots=True)
class Email:
    """Validated, normalized email address.

    Identities are keyed by address, so the value is stripped and lower-cased
    to keep lookups and uniqueness checks consistent.

    Attributes:
        value: The normalized email string.

    Raises:
        ValueError: If email is empty, malformed, or exceeds 255 chars.
    """

    value: str

    def __post_init__(self) -> None:
        normalized = self.value.strip().lower()
        if not normalized:
            msg = "Email cannot be empty"
            raise ValueError(msg)
        if len(normalized) > 255:
            msg = f"Email too long: {len(normalized)} chars (max 255)"
            raise ValueError(msg)
        if not _EMAIL_PATTERN.match(normalized):
            msg = f"Invalid email format: '{self.value}'"
            raise ValueError(msg)
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class DisplayName:
    """Validated display name value object.

    Format: Non-empty string after whitespace stripping, max 255 characters.

    Raises:
        ValueError: If display name is empty/whitespace-only or exceeds 255 chars.
    """

    value: str

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        if not stripped:
            msg = "Display name cannot be empty"
            raise ValueError(msg)
        if len(stripped) > 255:
            msg = f"Display name too long: {len(stripped)} chars (max 255)"
            raise ValueError(msg)
        object.__setattr__(self, "value", stripped)

    @classmethod
    def from_email(cls, email: Email) -> DisplayName:
        """Fallback display name built from the local part of an address."""
        return cls(email.value.split("@", 1)[0])
