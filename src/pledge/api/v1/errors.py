"""Translation of application errors into HTTP responses."""

import logging

from fastapi import HTTPException, status

from pledge.core.exceptions import (
    FatalChainError,
    NotFoundError,
    PledgeError,
    ReconciliationError,
    UnauthenticatedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: PledgeError) -> HTTPException:
    """Map an application error to an HTTPException.

    Args:
        exc: Error raised by a service

    Returns:
        HTTPException with the matching status code
    """
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UnauthenticatedError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, FatalChainError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if isinstance(exc, ReconciliationError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        )
    logger.error(f"Unmapped application error: {exc!r}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
    )
