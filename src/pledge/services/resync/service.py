"""Diff the campaign cache against on-chain state.

The chain is authoritative for edition counts. Drift is reported as a list of
corrections and written back only when explicitly requested.
"""

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from pledge.core.exceptions import NotFoundError, ValidationError
from pledge.infrastructure.blockchain.contracts import ContractManager
from pledge.infrastructure.blockchain.registry import ChainRegistry, get_chain_registry
from pledge.infrastructure.database.session import AsyncSessionLocal
from pledge.models.submission import Submission
from pledge.repositories.submission import SubmissionRepository
from pledge.services.resync.schemas import (
    Correction,
    ResyncError,
    ResyncResult,
    ResyncSummary,
)

logger = logging.getLogger(__name__)

# Cached column -> CampaignSnapshot attribute
DIFFED_FIELDS = {
    "sold_count": "editions_minted",
    "num_copies": "max_editions",
}


class CampaignResyncService:
    """Reports and optionally repairs cache drift for provisioned campaigns."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        registry: ChainRegistry | None = None,
        contracts_factory: Callable[[int], ContractManager] | None = None,
    ):
        """Initialize resync service.

        Args:
            session_factory: Factory for database sessions
            registry: Chain registry (process-wide by default)
            contracts_factory: Builds a contract reader for a chain id
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self.registry = registry or get_chain_registry()
        self._contracts_factory = contracts_factory or (
            lambda chain_id: ContractManager(self.registry.client_for(chain_id))
        )

    async def _diff(self, submission: Submission) -> ResyncResult:
        if submission.campaign_id is None or submission.chain_id is None:
            raise ValidationError(
                f"Submission {submission.id} has not been provisioned on-chain"
            )
        binding = self.registry.binding_for(
            submission.chain_id, submission.contract_address or ""
        )
        contracts = self._contracts_factory(binding.chain_id)
        campaign = await contracts.get_campaign(binding, submission.campaign_id)

        corrections = []
        for column, attribute in DIFFED_FIELDS.items():
            cached = getattr(submission, column)
            on_chain = getattr(campaign, attribute)
            if cached != on_chain:
                corrections.append(
                    Correction(field=column, cached=cached, on_chain=on_chain)
                )
        return ResyncResult(
            submission_id=submission.id,
            campaign_id=submission.campaign_id,
            chain_id=binding.chain_id,
            contract_address=binding.contract_address,
            corrections=corrections,
        )

    async def _apply(self, result: ResyncResult) -> None:
        async with self._session_factory() as session:
            await SubmissionRepository(session).update_by_id(
                result.submission_id,
                {c.field: c.on_chain for c in result.corrections},
            )
            await session.commit()
        result.applied = True
        logger.info(
            f"Resynced submission {result.submission_id}: "
            + ", ".join(f"{c.field} {c.cached} -> {c.on_chain}" for c in result.corrections)
        )

    async def resync_campaign(
        self, submission_id: int, apply: bool = False
    ) -> ResyncResult:
        """Diff one submission against its on-chain campaign.

        Args:
            submission_id: Submission database ID
            apply: Write chain values into the cache

        Returns:
            ResyncResult with the corrections found

        Raises:
            NotFoundError: If the submission does not exist
            ValidationError: If it is not provisioned or its binding is unknown
        """
        async with self._session_factory() as session:
            submission = await SubmissionRepository(session).get_by_id(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")

        result = await self._diff(submission)
        if apply and result.corrections:
            await self._apply(result)
        return result

    async def resync_all(self, apply: bool = False) -> ResyncSummary:
        """Diff every provisioned campaign, collecting failures per campaign.

        Args:
            apply: Write chain values into the cache

        Returns:
            ResyncSummary across all campaigns
        """
        async with self._session_factory() as session:
            submissions = await SubmissionRepository(session).get_provisioned()

        summary = ResyncSummary(applied=apply)
        for submission in submissions:
            summary.checked += 1
            try:
                result = await self._diff(submission)
                if apply and result.corrections:
                    await self._apply(result)
            except Exception as e:
                logger.warning(f"Resync failed for submission {submission.id}: {e}")
                summary.errors.append(
                    ResyncError(
                        submission_id=submission.id,
                        campaign_id=submission.campaign_id,
                        error=str(e),
                    )
                )
                continue
            if result.corrections:
                summary.drifted += 1
                summary.results.append(result)

        logger.info(
            f"Resync sweep: {summary.checked} checked, {summary.drifted} drifted, "
            f"{len(summary.errors)} errors, applied={apply}"
        )
        return summary


# Singleton instance
_resync_service: CampaignResyncService | None = None


def get_resync_service() -> CampaignResyncService:
    """Get or create resync service singleton."""
    global _resync_service
    if _resync_service is None:
        _resync_service = CampaignResyncService()
    return _resync_service


def reset_resync_service() -> None:
    """Reset resync service singleton (for testing)."""
    global _resync_service
    _resync_service = None
