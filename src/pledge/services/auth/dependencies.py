"""Authentication dependencies for FastAPI."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pledge.core.exceptions import UnauthenticatedError
from pledge.services.auth.jwt_service import (
    Identity,
    IdentityResolver,
    get_identity_resolver,
)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
) -> Identity:
    """Resolve the caller from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    try:
        return resolver.resolve_role(credentials.credentials if credentials else None)
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def require_admin(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Identity:
    """Allow only admin callers.

    Raises:
        HTTPException: 403 for non-admin callers
    """
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return identity


AdminIdentity = Annotated[Identity, Depends(require_admin)]
