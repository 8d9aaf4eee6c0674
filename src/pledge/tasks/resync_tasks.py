"""Cache/chain resync tasks."""

from typing import Any

from celery.utils.log import get_task_logger

from pledge.services.resync import get_resync_service
from pledge.tasks.base import async_task

logger = get_task_logger(__name__)


@async_task(queue="low", max_retries=0)
async def resync_all_campaigns(self, apply: bool = False) -> dict[str, Any]:
    """Diff every provisioned campaign and optionally repair drift.

    @param apply - Write chain values into the cache
    @returns ResyncSummary as JSON
    """
    summary = await get_resync_service().resync_all(apply=apply)
    if summary.errors:
        logger.warning(f"Resync sweep finished with {len(summary.errors)} errors")
    return summary.model_dump(mode="json")


@async_task(queue="normal", max_retries=3)
async def resync_campaign(
    self, submission_id: int, apply: bool = False
) -> dict[str, Any]:
    """Diff one campaign against the chain.

    @param submission_id - Submission database ID
    @param apply - Write chain values into the cache
    @returns ResyncResult as JSON
    """
    result = await get_resync_service().resync_campaign(submission_id, apply=apply)
    logger.info(
        f"Resync of submission {submission_id}: {len(result.corrections)} corrections"
    )
    return result.model_dump(mode="json")
