"""Port interface for shareable code generation.

Codes are bearer credentials for joining a tenant, so implementations must
draw from a cryptographically secure source. Uniqueness is not the
generator's concern: callers insert with insert-if-absent semantics and ask
for another candidate on collision.

Example:
    >>> from rollcall.foundation.domain.ports import CodeGeneratorPort
    >>> def candidate(gen: CodeGeneratorPort) -> str:
    ...     return gen.generate()
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CodeGeneratorPort(Protocol):
    """Port for producing and checking human-shareable codes."""

    def generate(self) -> str:
        """Return a fresh candidate code."""
        ...

    def normalize(self, raw: str) -> str:
        """Canonicalize user-typed input (whitespace, letter case)."""
        ...

    def is_well_formed(self, code: str) -> bool:
        """Return True if ``code`` has the expected length and alphabet."""
        ...
