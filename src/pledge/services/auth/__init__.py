"""Authentication module."""

from pledge.services.auth.dependencies import (
    AdminIdentity,
    get_current_identity,
    require_admin,
)
from pledge.services.auth.jwt_service import (
    ADMIN_ROLE,
    Identity,
    IdentityResolver,
    get_identity_resolver,
)

__all__ = [
    # Identity
    "ADMIN_ROLE",
    "Identity",
    "IdentityResolver",
    "get_identity_resolver",
    # Dependencies
    "AdminIdentity",
    "get_current_identity",
    "require_admin",
]
