"""Bearer token resolution for the admin surface."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel

from pledge.core.config import get_settings
from pledge.core.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


class Identity(BaseModel):
    """Caller resolved from a bearer token."""

    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class IdentityResolver:
    """Resolves HS256 JWTs signed with the application secret."""

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        access_token_expire_minutes: int | None = None,
    ):
        """Initialize identity resolver.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default from settings, HS256)
            access_token_expire_minutes: Lifetime of issued tokens
        """
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        user_id: str,
        role: str = "user",
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """Issue an access token (used by operators and tests).

        Args:
            user_id: Token subject
            role: Caller role
            extra_claims: Additional claims to include

        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }
        if extra_claims:
            payload.update(extra_claims)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def resolve_role(self, bearer_token: str | None) -> Identity:
        """Resolve a bearer token to an identity.

        Args:
            bearer_token: Raw token, with or without the "Bearer " prefix

        Returns:
            Identity with user id and role

        Raises:
            UnauthenticatedError: If the token is missing, invalid or expired
        """
        if not bearer_token:
            raise UnauthenticatedError("Not authenticated")
        token = bearer_token.removeprefix("Bearer ").strip()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise UnauthenticatedError("Invalid or expired token") from e

        subject = payload.get("sub")
        if not subject:
            raise UnauthenticatedError("Token has no subject")
        return Identity(user_id=str(subject), role=payload.get("role") or "user")


# Singleton instance
_identity_resolver: IdentityResolver | None = None


def get_identity_resolver() -> IdentityResolver:
    """Get or create identity resolver singleton."""
    global _identity_resolver
    if _identity_resolver is None:
        _identity_resolver = IdentityResolver()
    return _identity_resolver
