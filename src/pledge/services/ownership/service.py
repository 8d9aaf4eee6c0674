"""Wallet ownership aggregation across every registered edition contract.

Each contract is scanned independently: a fault on one token or one contract
is recorded and skipped, never aborting the others.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession
from web3 import Web3

from pledge.core.exceptions import ValidationError
from pledge.infrastructure.blockchain.contracts import ContractManager
from pledge.infrastructure.blockchain.layouts import CampaignSnapshot, EditionInfo
from pledge.infrastructure.blockchain.registry import (
    ChainRegistry,
    ContractBinding,
    get_chain_registry,
)
from pledge.infrastructure.blockchain.units import wei_to_usd
from pledge.infrastructure.database.session import AsyncSessionLocal
from pledge.models.submission import Submission
from pledge.repositories.submission import SubmissionRepository
from pledge.services.ownership.metadata import MetadataResolver
from pledge.services.ownership.pricing import resolve_price_per_edition
from pledge.services.ownership.schemas import (
    ContractError,
    OwnedToken,
    OwnershipResult,
)

logger = logging.getLogger(__name__)


@dataclass
class _ChainToken:
    """On-chain facts gathered for one owned token."""

    edition: EditionInfo
    campaign: CampaignSnapshot
    token_uri: str | None
    is_frozen: bool
    is_soulbound: bool


class OwnershipAggregator:
    """Answers "what does wallet W own" from chain state plus the cache."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        registry: ChainRegistry | None = None,
        contracts_factory: Callable[[int], ContractManager] | None = None,
        metadata_resolver: MetadataResolver | None = None,
    ):
        """Initialize ownership aggregator.

        Args:
            session_factory: Factory for database sessions
            registry: Chain registry (process-wide by default)
            contracts_factory: Builds a contract reader for a chain id
            metadata_resolver: Token metadata fetcher
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self.registry = registry or get_chain_registry()
        self._contracts_factory = contracts_factory or (
            lambda chain_id: ContractManager(self.registry.client_for(chain_id))
        )
        self.metadata_resolver = metadata_resolver or MetadataResolver()

    async def list_owned_tokens(self, address: str) -> OwnershipResult:
        """List editions held by a wallet.

        Args:
            address: Wallet address

        Returns:
            OwnershipResult with tokens and isolated per-contract errors

        Raises:
            ValidationError: If the address is malformed
        """
        if not Web3.is_address(address):
            raise ValidationError(f"Invalid wallet address: {address}")
        wallet = Web3.to_checksum_address(address)
        result = OwnershipResult(wallet=wallet)

        for binding in self.registry.mintable_bindings():
            try:
                tokens = await self._scan_binding(binding, wallet, result)
            except Exception as e:
                logger.warning(
                    f"Ownership scan failed on {binding.contract_address} "
                    f"(chain {binding.chain_id}): {e}"
                )
                result.per_contract_errors.append(
                    ContractError(
                        chain_id=binding.chain_id,
                        contract_address=binding.contract_address,
                        error=str(e),
                    )
                )
                continue
            result.tokens.extend(tokens)

        logger.info(
            f"Wallet {wallet}: {len(result.tokens)} tokens, "
            f"{len(result.per_contract_errors)} errors"
        )
        return result

    async def _scan_binding(
        self, binding: ContractBinding, wallet: str, result: OwnershipResult
    ) -> list[OwnedToken]:
        """Read every token the wallet holds on one contract."""
        contracts = self._contracts_factory(binding.chain_id)
        balance = await contracts.balance_of(binding, wallet)
        if balance == 0:
            return []

        campaigns: dict[int, CampaignSnapshot] = {}
        found: dict[int, _ChainToken] = {}
        for index in range(balance):
            token_id: int | None = None
            try:
                token_id = await contracts.token_of_owner_by_index(binding, wallet, index)
                edition = await contracts.get_edition_info(binding, token_id)
                campaign = campaigns.get(edition.campaign_id)
                if campaign is None:
                    campaign = await contracts.get_campaign(binding, edition.campaign_id)
                    campaigns[edition.campaign_id] = campaign
                token_uri = await contracts.token_uri(binding, token_id)
                is_frozen, is_soulbound = await contracts.token_flags(binding, token_id)
            except Exception as e:
                logger.warning(
                    f"Token lookup failed on {binding.contract_address} "
                    f"index {index} (token {token_id}): {e}"
                )
                result.per_contract_errors.append(
                    ContractError(
                        chain_id=binding.chain_id,
                        contract_address=binding.contract_address,
                        token_id=token_id,
                        error=str(e),
                    )
                )
                continue
            found[token_id] = _ChainToken(
                edition=edition,
                campaign=campaign,
                token_uri=token_uri,
                is_frozen=is_frozen,
                is_soulbound=is_soulbound,
            )

        submissions = await self._load_submissions(binding, list(campaigns))
        return [
            await self._to_owned_token(binding, token_id, facts, submissions)
            for token_id, facts in found.items()
        ]

    async def _load_submissions(
        self, binding: ContractBinding, campaign_ids: list[int]
    ) -> dict[int, Submission]:
        try:
            async with self._session_factory() as session:
                return await SubmissionRepository(session).get_by_campaigns(
                    binding.chain_id, binding.contract_address, campaign_ids
                )
        except Exception as e:
            # Display falls back to metadata and placeholders
            logger.warning(f"Submission lookup failed for {campaign_ids}: {e}")
            return {}

    async def _to_owned_token(
        self,
        binding: ContractBinding,
        token_id: int,
        facts: _ChainToken,
        submissions: dict[int, Submission],
    ) -> OwnedToken:
        """Merge chain facts with cached display fields."""
        chain = self.registry.get_chain(binding.chain_id)
        campaign_id = facts.edition.campaign_id
        submission = submissions.get(campaign_id)

        title = submission.title if submission else None
        image = submission.image_uri if submission else None
        story = submission.story if submission else None

        metadata: dict[str, Any] | None = None
        if not (title and image and story):
            metadata = await self.metadata_resolver.resolve_uri(facts.token_uri)
        metadata = metadata or {}

        on_chain_usd = wei_to_usd(
            facts.campaign.price_per_edition,
            chain.usd_per_native,
            chain.native_currency_decimals,
        )
        price = resolve_price_per_edition(
            nft_price=submission.nft_price if submission else None,
            price_per_copy=submission.price_per_copy if submission else None,
            goal=submission.goal if submission else None,
            num_copies=submission.num_copies if submission else None,
            on_chain_price_usd=on_chain_usd,
        )

        return OwnedToken(
            token_id=token_id,
            chain_id=binding.chain_id,
            contract_address=binding.contract_address,
            contract_version=binding.contract_version.value,
            campaign_id=campaign_id,
            edition_number=facts.edition.edition_number,
            total_editions=facts.edition.total_editions,
            title=title or metadata.get("name") or f"Campaign #{campaign_id}",
            image=image or metadata.get("image") or "",
            story=story or metadata.get("description") or "",
            category=(submission.category if submission else None)
            or facts.campaign.category,
            token_uri=facts.token_uri,
            price_per_edition_usd=price,
            is_frozen=facts.is_frozen,
            is_soulbound=facts.is_soulbound,
            submission_id=submission.id if submission else None,
            explorer_url=chain.token_url(binding.contract_address, token_id)
            if chain.explorer_base_url
            else None,
        )


# Singleton instance
_aggregator: OwnershipAggregator | None = None


def get_ownership_aggregator() -> OwnershipAggregator:
    """Get or create ownership aggregator singleton."""
    global _aggregator
    if _aggregator is None:
        _aggregator = OwnershipAggregator()
    return _aggregator


def reset_ownership_aggregator() -> None:
    """Reset ownership aggregator singleton (for testing)."""
    global _aggregator
    _aggregator = None


async def close_ownership_aggregator() -> None:
    """Close the singleton's metadata HTTP client if it was ever created."""
    if _aggregator is not None:
        await _aggregator.metadata_resolver.close()
