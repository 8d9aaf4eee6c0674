"""Campaign provisioning: turn an approved submission into an on-chain campaign.

The write happens exactly once per submission. A minted submission with a
campaign id is returned as-is, so retried admin actions never create a second
campaign. Calls for one submission are serialized in-process, and the row is
claimed (status provisioning) before broadcasting so other workers back off.
"""

import asyncio
import logging
from decimal import ROUND_DOWN, Decimal
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from pledge.core.config import Settings, get_settings
from pledge.core.exceptions import NotFoundError, ValidationError
from pledge.infrastructure.blockchain.contracts import ContractManager
from pledge.infrastructure.blockchain.layouts import CreateCampaignParams, get_layout
from pledge.infrastructure.blockchain.registry import ChainRegistry, get_chain_registry
from pledge.infrastructure.blockchain.signer import SignerRole
from pledge.infrastructure.blockchain.transaction import (
    PENDING_TX_PLACEHOLDER,
    ContractCall,
    SubmitConfig,
    TransactionSubmitter,
    get_transaction_submitter,
)
from pledge.infrastructure.blockchain.units import usd_to_wei
from pledge.infrastructure.database.session import AsyncSessionLocal
from pledge.models.submission import Submission
from pledge.repositories.submission import PROVISIONING_STATUS, SubmissionRepository
from pledge.services.notifications import (
    NotificationKind,
    NotificationSender,
    get_notification_sender,
)
from pledge.services.provisioning.schemas import CampaignEconomics, ProvisionResult

logger = logging.getLogger(__name__)

DEFAULT_GOAL_USD = Decimal("100")
MIN_DEFAULT_EDITIONS = 100
CENT = Decimal("0.01")


def derive_economics(submission: Submission) -> CampaignEconomics:
    """Derive goal, edition count and unit price from a submission.

    Args:
        submission: Cached submission row

    Returns:
        CampaignEconomics in USD
    """
    goal = Decimal(submission.goal) if submission.goal else DEFAULT_GOAL_USD

    copies = submission.num_copies or submission.nft_editions or 0
    if copies <= 0:
        copies = max(MIN_DEFAULT_EDITIONS, int(goal))

    explicit = submission.price_per_copy or submission.nft_price
    if explicit:
        price = Decimal(explicit)
    elif goal > 0:
        price = (goal / copies).quantize(CENT, rounding=ROUND_DOWN)
    else:
        price = Decimal("0")

    return CampaignEconomics(goal=goal, max_editions=copies, price_per_edition=price)


class CampaignProvisioner:
    """Creates campaigns on-chain through the relayer signer."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        registry: ChainRegistry | None = None,
        submitter_factory: Callable[[int], TransactionSubmitter] | None = None,
        contracts_factory: Callable[[int], ContractManager] | None = None,
        notifier: NotificationSender | None = None,
        settings: Settings | None = None,
    ):
        """Initialize campaign provisioner.

        Args:
            session_factory: Factory for database sessions
            registry: Chain registry (process-wide by default)
            submitter_factory: Builds a relayer submitter for a chain id
            contracts_factory: Builds a contract reader for a chain id
            notifier: Creator notification sender
            settings: Application settings
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self.registry = registry or get_chain_registry()
        self.settings = settings or get_settings()
        self._submitter_factory = submitter_factory or (
            lambda chain_id: get_transaction_submitter(
                SignerRole.RELAYER, chain_id, self.registry
            )
        )
        self._contracts_factory = contracts_factory or (
            lambda chain_id: ContractManager(self.registry.client_for(chain_id))
        )
        self.notifier = notifier or get_notification_sender()
        self._locks: dict[int, asyncio.Lock] = {}

    async def provision(self, submission_id: int) -> ProvisionResult:
        """Create the on-chain campaign for a submission.

        Args:
            submission_id: Submission database ID

        Returns:
            ProvisionResult with campaign id and transaction hash

        Raises:
            NotFoundError: If the submission does not exist
            ValidationError: If the submission cannot be provisioned
            FatalChainError: If the createCampaign transaction fails
        """
        # Same-process double submits wait here and then hit the guard below
        lock = self._locks.setdefault(submission_id, asyncio.Lock())
        async with lock:
            return await self._provision(submission_id)

    async def _provision(self, submission_id: int) -> ProvisionResult:
        async with self._session_factory() as session:
            submission = await SubmissionRepository(session).get_by_id(submission_id)

        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")

        # Retried admin actions land here
        if submission.status == "minted" and submission.campaign_id is not None:
            logger.info(
                f"Submission {submission_id} already provisioned as campaign "
                f"{submission.campaign_id}"
            )
            return ProvisionResult(
                submission_id=submission_id,
                campaign_id=submission.campaign_id,
                tx_hash=submission.tx_hash,
                contract_address=submission.contract_address,
                chain_id=submission.chain_id,
                already_provisioned=True,
            )

        if submission.status == "rejected":
            raise ValidationError(f"Submission {submission_id} was rejected")
        if submission.status == PROVISIONING_STATUS:
            raise ValidationError(
                f"Submission {submission_id} is already being provisioned"
            )
        if not (submission.metadata_uri or "").strip():
            raise ValidationError(f"Submission {submission_id} has no metadata URI")

        binding = self.registry.active_binding(submission.chain_id)
        chain = self.registry.get_chain(binding.chain_id)

        try:
            submitter = self._submitter_factory(binding.chain_id)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        beneficiary = (
            submission.creator_wallet
            or self.settings.relayer_address
            or submitter.address
        )
        if not beneficiary:
            raise ValidationError(f"Submission {submission_id} has no beneficiary wallet")
        if not submission.creator_wallet:
            logger.warning(
                f"Submission {submission_id} has no creator wallet, "
                f"funds accrue to relayer {beneficiary}"
            )

        economics = derive_economics(submission)
        decimals = chain.native_currency_decimals
        params = CreateCampaignParams(
            category=submission.category or "general",
            base_uri=submission.metadata_uri,
            goal_wei=usd_to_wei(economics.goal, chain.usd_per_native, decimals),
            max_editions=economics.max_editions,
            price_wei=usd_to_wei(
                economics.price_per_edition, chain.usd_per_native, decimals
            ),
            beneficiary=beneficiary,
            fee_rate_bps=self.settings.campaign_fee_rate_bps,
            nonprofit=self.settings.default_nonprofit_address,
            immediate_payout_enabled=self.settings.immediate_payout_enabled,
        )
        layout = get_layout(binding.contract_version)
        call = ContractCall(
            binding=binding,
            function_name="createCampaign",
            args=layout.create_campaign_args(params),
        )
        contracts = self._contracts_factory(binding.chain_id)

        logger.info(
            f"Provisioning submission {submission_id} on {binding.contract_version.value} "
            f"{binding.contract_address} (chain {binding.chain_id}): "
            f"goal=${economics.goal}, editions={economics.max_editions}, "
            f"price=${economics.price_per_edition}"
        )
        async with self._session_factory() as session:
            previous_status = await SubmissionRepository(
                session
            ).claim_for_provisioning(submission_id)
            await session.commit()
        if previous_status is None:
            raise ValidationError(
                f"Submission {submission_id} is already being provisioned"
            )

        try:
            result = await submitter.submit(
                call,
                SubmitConfig.from_settings(
                    self.settings, confirmations=chain.confirmations
                ),
                predict_id=lambda: contracts.total_campaigns(binding),
            )
        except Exception:
            # Nothing was created; make the row retryable again
            async with self._session_factory() as session:
                await SubmissionRepository(session).release_claim(
                    submission_id, previous_status
                )
                await session.commit()
            raise

        campaign_id = result.predicted_id
        stored_hash = (
            result.signed_tx_hash
            if result.tx_hash == PENDING_TX_PLACEHOLDER
            else result.tx_hash
        )
        values = {
            "tx_hash": stored_hash,
            "contract_address": binding.contract_address,
            "chain_id": binding.chain_id,
            "contract_version": binding.contract_version.value,
            "num_copies": economics.max_editions,
            "price_per_copy": economics.price_per_edition,
        }

        async with self._session_factory() as session:
            repo = SubmissionRepository(session)
            if campaign_id is None:
                # Broadcast stands but the id is unknown; status reverts
                logger.error(
                    f"Campaign id for submission {submission_id} could not be "
                    f"predicted (tx {result.tx_hash})"
                )
                await repo.release_claim(submission_id, previous_status, values)
            else:
                await repo.mark_provisioned(
                    submission_id, {**values, "campaign_id": campaign_id}
                )
            await session.commit()

        logger.info(
            f"Submission {submission_id} provisioned: campaign {campaign_id}, "
            f"tx {result.tx_hash}, status {result.status.value}"
        )

        notification_sent = False
        if submission.creator_email:
            notice = await self.notifier.send(
                submission.creator_email,
                NotificationKind.CAMPAIGN_APPROVED,
                {
                    "title": submission.title,
                    "campaign_id": campaign_id,
                    "campaign_url": f"{self.settings.site_url.rstrip('/')}/campaigns/{campaign_id}",
                    "tx_url": chain.tx_url(stored_hash) if stored_hash else None,
                },
            )
            notification_sent = notice.sent

        return ProvisionResult(
            submission_id=submission_id,
            campaign_id=campaign_id,
            tx_hash=result.tx_hash,
            contract_address=binding.contract_address,
            chain_id=binding.chain_id,
            pending=not result.is_confirmed,
            notification_sent=notification_sent,
        )


# Singleton instance
_provisioner: CampaignProvisioner | None = None


def get_campaign_provisioner() -> CampaignProvisioner:
    """Get or create campaign provisioner singleton."""
    global _provisioner
    if _provisioner is None:
        _provisioner = CampaignProvisioner()
    return _provisioner


def reset_campaign_provisioner() -> None:
    """Reset campaign provisioner singleton (for testing)."""
    global _provisioner
    _provisioner = None
