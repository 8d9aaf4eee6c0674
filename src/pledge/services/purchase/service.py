"""Sequential multi-edition minting for one buyer session.

Each unit is a separate mint transaction and must confirm before the next is
signed. The tip rides on the last unit only. The first failing unit stops the
loop and everything minted before it is returned.
"""

import logging
from decimal import Decimal
from typing import Callable

from pledge.core.config import Settings, get_settings
from pledge.core.exceptions import FatalChainError, ValidationError
from pledge.infrastructure.blockchain.contracts import ContractManager
from pledge.infrastructure.blockchain.events import EventParser
from pledge.infrastructure.blockchain.layouts import get_layout
from pledge.infrastructure.blockchain.registry import (
    ChainConfig,
    ChainRegistry,
    ContractBinding,
    get_chain_registry,
)
from pledge.infrastructure.blockchain.signer import SignerRole
from pledge.infrastructure.blockchain.transaction import (
    PENDING_TX_PLACEHOLDER,
    ContractCall,
    SubmitConfig,
    TransactionSubmitter,
    get_transaction_submitter,
)
from pledge.infrastructure.blockchain.units import usd_to_wei
from pledge.services.purchase.schemas import (
    MintedEdition,
    PurchaseOutcome,
    PurchaseRequest,
)

logger = logging.getLogger(__name__)

BPS = 10_000

ProgressCallback = Callable[[str], None]


def user_facing_error(exc: BaseException) -> str:
    """Map wallet and node failures to buyer-facing text."""
    message = str(exc)
    lowered = message.lower()
    if "user rejected" in lowered or "denied" in lowered:
        return "Transaction cancelled"
    if "insufficient funds" in lowered:
        return "Insufficient balance"
    return message


def compute_unit_value(
    on_chain_price_wei: int,
    price_per_unit_usd: Decimal | None,
    chain: ChainConfig,
    buffer_bps: int = 100,
) -> int:
    """Value sent with each mint, never below the contract price.

    Args:
        on_chain_price_wei: Campaign price per edition (wei)
        price_per_unit_usd: Quoted USD price, if any
        chain: Chain carrying the USD rate
        buffer_bps: Headroom added to the converted quote

    Returns:
        Value per unit in wei
    """
    if price_per_unit_usd is None:
        return on_chain_price_wei
    quoted = usd_to_wei(
        price_per_unit_usd, chain.usd_per_native, chain.native_currency_decimals
    )
    return max(on_chain_price_wei, quoted * (BPS + buffer_bps) // BPS)


class EditionPurchaseOrchestrator:
    """Mints editions for a buyer through the purchaser signer."""

    def __init__(
        self,
        registry: ChainRegistry | None = None,
        submitter_factory: Callable[[int], TransactionSubmitter] | None = None,
        contracts_factory: Callable[[int], ContractManager] | None = None,
        event_parser: EventParser | None = None,
        settings: Settings | None = None,
    ):
        """Initialize purchase orchestrator.

        Args:
            registry: Chain registry (process-wide by default)
            submitter_factory: Builds a purchaser submitter for a chain id
            contracts_factory: Builds a contract reader for a chain id
            event_parser: Receipt log parser
            settings: Application settings
        """
        self.registry = registry or get_chain_registry()
        self.settings = settings or get_settings()
        self._submitter_factory = submitter_factory or (
            lambda chain_id: get_transaction_submitter(
                SignerRole.PURCHASER, chain_id, self.registry
            )
        )
        self._contracts_factory = contracts_factory or (
            lambda chain_id: ContractManager(self.registry.client_for(chain_id))
        )
        self.event_parser = event_parser or EventParser()

    def _resolve_binding(self, request: PurchaseRequest) -> ContractBinding:
        if request.contract_address:
            chain_id = (
                request.chain_id
                if request.chain_id is not None
                else self.registry.default_chain_id
            )
            return self.registry.binding_for(chain_id, request.contract_address)
        return self.registry.active_binding(request.chain_id)

    async def purchase(
        self,
        request: PurchaseRequest,
        on_progress: ProgressCallback | None = None,
    ) -> PurchaseOutcome:
        """Mint request.quantity editions, one confirmed transaction at a time.

        Args:
            request: Purchase request
            on_progress: Called with each progress message

        Returns:
            PurchaseOutcome; check error / pending_tx_hash for early stops

        Raises:
            ValidationError: If a precondition fails (nothing is sent)
            FatalChainError: If the campaign state cannot be read
        """
        binding = self._resolve_binding(request)
        chain = self.registry.get_chain(binding.chain_id)

        try:
            submitter = self._submitter_factory(binding.chain_id)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if request.buyer_wallet.lower() != submitter.address.lower():
            raise ValidationError(
                f"Buyer wallet {request.buyer_wallet} does not match the "
                f"purchasing signer {submitter.address}"
            )

        contracts = self._contracts_factory(binding.chain_id)
        campaign_id = request.campaign_id
        try:
            total = await contracts.total_campaigns(binding)
            campaign = (
                await contracts.get_campaign(binding, campaign_id)
                if campaign_id < total
                else None
            )
        except FatalChainError:
            raise
        except Exception as e:
            raise FatalChainError(
                f"Campaign {campaign_id} read failed: {e}", cause=e
            ) from e
        if campaign is None:
            raise ValidationError(f"Campaign {campaign_id} does not exist on-chain yet")
        if not campaign.active:
            raise ValidationError(f"Campaign {campaign_id} is not active")
        if campaign.closed:
            raise ValidationError(f"Campaign {campaign_id} is closed")

        unit_value = compute_unit_value(
            campaign.price_per_edition,
            request.price_per_unit_usd,
            chain,
            self.settings.purchase_price_buffer_bps,
        )
        tip_wei = (
            usd_to_wei(request.tip_usd, chain.usd_per_native, chain.native_currency_decimals)
            if request.tip_usd > 0
            else 0
        )
        layout = get_layout(binding.contract_version)
        # Edition numbering and the nonce sequence need each unit confirmed
        config = SubmitConfig.from_settings(
            self.settings, confirmations=max(1, chain.confirmations)
        )

        outcome = PurchaseOutcome(
            campaign_id=campaign_id,
            chain_id=binding.chain_id,
            contract_address=binding.contract_address,
            requested=request.quantity,
        )

        def progress(message: str) -> None:
            outcome.messages.append(message)
            if on_progress is not None:
                on_progress(message)

        n = request.quantity
        for index in range(n):
            unit = index + 1
            unit_tip = tip_wei if unit == n else 0
            function_name, args = layout.mint_call(campaign_id, unit_tip)
            call = ContractCall(
                binding=binding,
                function_name=function_name,
                args=args,
                value=unit_value + unit_tip,
            )

            progress(f"Minting edition {unit} of {n}")
            try:
                result = await submitter.submit(call, config)
            except Exception as e:
                outcome.error = user_facing_error(e)
                logger.error(
                    f"Mint {unit}/{n} for campaign {campaign_id} failed: {e}"
                )
                break

            if not result.is_confirmed:
                outcome.pending_tx_hash = (
                    result.signed_tx_hash
                    if result.tx_hash == PENDING_TX_PLACEHOLDER
                    else result.tx_hash
                )
                outcome.error = f"Edition {unit} of {n} is awaiting confirmation"
                logger.warning(
                    f"Mint {unit}/{n} for campaign {campaign_id} pending: "
                    f"{outcome.pending_tx_hash}"
                )
                break

            outcome.tx_hashes.append(result.tx_hash)
            try:
                tokens = self.event_parser.extract_minted_tokens(
                    result.receipt or {}, binding.contract_address
                )
            except Exception as e:
                logger.warning(f"Could not parse mint receipt {result.tx_hash}: {e}")
                tokens = []
            if not tokens:
                logger.warning(f"No minted token found in receipt {result.tx_hash}")

            for token in tokens:
                outcome.minted_tokens.append(
                    MintedEdition(
                        token_id=token.token_id,
                        edition_number=token.edition_number,
                        tx_hash=result.tx_hash,
                    )
                )
                outcome.minted_token_ids.append(token.token_id)

            progress(f"Edition {unit} of {n} confirmed")

        logger.info(
            f"Purchase for campaign {campaign_id}: {outcome.confirmed_units}/{n} "
            f"minted, tokens {outcome.minted_token_ids}"
        )
        return outcome


# Singleton instance
_orchestrator: EditionPurchaseOrchestrator | None = None


def get_purchase_orchestrator() -> EditionPurchaseOrchestrator:
    """Get or create purchase orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = EditionPurchaseOrchestrator()
    return _orchestrator


def reset_purchase_orchestrator() -> None:
    """Reset purchase orchestrator singleton (for testing)."""
    global _orchestrator
    _orchestrator = None
