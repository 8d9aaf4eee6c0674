"""Edition purchase module."""

from pledge.services.purchase.schemas import (
    MintedEdition,
    PurchaseOutcome,
    PurchaseRequest,
)
from pledge.services.purchase.service import (
    EditionPurchaseOrchestrator,
    compute_unit_value,
    get_purchase_orchestrator,
    reset_purchase_orchestrator,
    user_facing_error,
)

__all__ = [
    # Schemas
    "PurchaseRequest",
    "PurchaseOutcome",
    "MintedEdition",
    # Service
    "EditionPurchaseOrchestrator",
    "compute_unit_value",
    "user_facing_error",
    "get_purchase_orchestrator",
    "reset_purchase_orchestrator",
]
