"""Edition purchase and reconciliation API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from pledge.api.v1.errors import to_http_exception
from pledge.core.exceptions import PledgeError
from pledge.services.purchase import (
    EditionPurchaseOrchestrator,
    PurchaseOutcome,
    PurchaseRequest,
    get_purchase_orchestrator,
)
from pledge.services.reconciliation import (
    PurchaseInput,
    PurchaseReconciler,
    ReconcileResult,
    get_purchase_reconciler,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.post("", response_model=PurchaseOutcome)
async def purchase_editions(
    request: PurchaseRequest,
    service: Annotated[EditionPurchaseOrchestrator, Depends(get_purchase_orchestrator)],
) -> PurchaseOutcome:
    """Mint editions sequentially.

    Partial success is returned with status 200; compare minted_token_ids
    against requested and read error / pending_tx_hash.
    """
    try:
        return await service.purchase(request)
    except PledgeError as e:
        raise to_http_exception(e) from e


@router.post("/reconcile", response_model=ReconcileResult)
async def reconcile_purchase(
    data: PurchaseInput,
    service: Annotated[PurchaseReconciler, Depends(get_purchase_reconciler)],
) -> ReconcileResult:
    """Record a confirmed purchase. Safe to repeat for the same tx_hash."""
    try:
        return await service.reconcile(data)
    except PledgeError as e:
        raise to_http_exception(e) from e
