"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the domain layer uses to interact
with external services. Implementations (adapters) live in infrastructure.
"""

from rollcall.foundation.domain.ports.code_generator import CodeGeneratorPort
from rollcall.foundation.domain.ports.identity_gateway import IdentityGatewayPort

__all__ = ["CodeGeneratorPort", "IdentityGatewayPort"]
