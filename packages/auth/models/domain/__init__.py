from packages.auth.models.domain.authorization_context import (
    AuthorizationContext,
    build_service_role_context,
)

__all__ = [
    "AuthorizationContext",
    "build_service_role_context",
]
