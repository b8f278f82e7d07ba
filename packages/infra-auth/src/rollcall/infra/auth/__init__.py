"""Rollcall Infra Auth -- identity provider adapter and join-code generation.

Provides the HTTP adapter for the identity provider admin API, the
shareable code generator and their settings.
"""

from rollcall.infra.auth.code_generator import (
    DEFAULT_CODE_LENGTH,
    SHAREABLE_ALPHABET,
    ShareableCodeGenerator,
)
from rollcall.infra.auth.identity_gateway import HttpIdentityGateway
from rollcall.infra.auth.memory_gateway import InMemoryIdentityGateway
from rollcall.infra.auth.settings import IdentitySettings, get_identity_settings

__all__ = [
    "DEFAULT_CODE_LENGTH",
    "SHAREABLE_ALPHABET",
    "HttpIdentityGateway",
    "IdentitySettings",
    "InMemoryIdentityGateway",
    "ShareableCodeGenerator",
    "get_identity_settings",
]
