"""Wallet ownership read-path module."""

from pledge.services.ownership.metadata import MetadataResolver
from pledge.services.ownership.pricing import resolve_price_per_edition
from pledge.services.ownership.schemas import (
    ContractError,
    OwnedToken,
    OwnershipResult,
)
from pledge.services.ownership.service import (
    OwnershipAggregator,
    close_ownership_aggregator,
    get_ownership_aggregator,
    reset_ownership_aggregator,
)

__all__ = [
    # Schemas
    "OwnedToken",
    "ContractError",
    "OwnershipResult",
    # Helpers
    "MetadataResolver",
    "resolve_price_per_edition",
    # Service
    "OwnershipAggregator",
    "close_ownership_aggregator",
    "get_ownership_aggregator",
    "reset_ownership_aggregator",
]
