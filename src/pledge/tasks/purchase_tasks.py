"""Queued purchase ingestion.

Reconciliation is idempotent on tx_hash, so automatic retries and duplicate
deliveries are safe.
"""

from typing import Any

from celery.utils.log import get_task_logger

from pledge.services.reconciliation import PurchaseInput, get_purchase_reconciler
from pledge.tasks.base import async_task

logger = get_task_logger(__name__)


@async_task(queue="high", max_retries=5)
async def reconcile_purchase(self, purchase: dict[str, Any]) -> dict[str, Any]:
    """Reconcile a confirmed purchase in the background.

    @param purchase - PurchaseInput fields as JSON
    @returns ReconcileResult as JSON
    """
    data = PurchaseInput.model_validate(purchase)
    logger.info(f"Reconciling purchase {data.tx_hash} (campaign {data.campaign_id})")
    result = await get_purchase_reconciler().reconcile(data)
    if result.step_errors:
        logger.warning(f"Purchase {data.tx_hash} step errors: {result.step_errors}")
    return result.model_dump(mode="json")
