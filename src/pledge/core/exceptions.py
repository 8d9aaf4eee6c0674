"""Error taxonomy shared by the chain and cache layers."""

from typing import Any


class PledgeError(Exception):
    """Base class for application errors."""


class ValidationError(PledgeError):
    """Input rejected before any network call."""


class NotFoundError(ValidationError):
    """Referenced record does not exist."""


class UnknownChainError(ValidationError):
    """Chain id or contract binding is not registered."""


class UnauthenticatedError(PledgeError):
    """Bearer token missing, malformed or expired."""


class ChainError(PledgeError):
    """Failure reported by the blockchain layer."""


class RetryableChainError(ChainError):
    """Transient submission failure (nonce race, underpriced replacement)."""


class FatalChainError(ChainError):
    """Definitive submission failure, surfaced to the caller verbatim."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        attempts: list[Any] | None = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts or []


class ReconciliationError(PledgeError):
    """Purchase record could not be made durable."""
