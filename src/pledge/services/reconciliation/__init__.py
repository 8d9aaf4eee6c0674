"""Purchase reconciliation module."""

from pledge.services.reconciliation.schemas import (
    NotificationsSent,
    PurchaseInput,
    PurchaseRecordView,
    ReconcileResult,
)
from pledge.services.reconciliation.service import (
    PurchaseReconciler,
    get_purchase_reconciler,
    reset_purchase_reconciler,
)

__all__ = [
    # Schemas
    "PurchaseInput",
    "PurchaseRecordView",
    "NotificationsSent",
    "ReconcileResult",
    # Service
    "PurchaseReconciler",
    "get_purchase_reconciler",
    "reset_purchase_reconciler",
]
