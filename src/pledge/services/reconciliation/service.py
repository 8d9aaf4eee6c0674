"""Idempotent ingestion of confirmed purchases into the cache.

Order of steps:
1. Append an informational event row (duplicates accepted)
2. Insert the purchase keyed by tx_hash; a conflict means already reconciled
3. Upsert token rows keyed by (token_id, chain_id, contract_address)
4. Atomically increment the campaign's sold_count
5. Recompute total_raised from fresh aggregates
6. Send buyer receipt and creator notice

Only step 2 can fail the call. Later failures are reported in step_errors and
never unwind the stored purchase.
"""

import logging
from decimal import Decimal
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from pledge.core.config import Settings, get_settings
from pledge.core.exceptions import ReconciliationError
from pledge.infrastructure.blockchain.registry import (
    ChainRegistry,
    ContractBinding,
    get_chain_registry,
)
from pledge.infrastructure.database.session import AsyncSessionLocal
from pledge.models.submission import Submission
from pledge.repositories.purchase import PurchaseEventRepository, PurchaseRepository
from pledge.repositories.submission import SubmissionRepository
from pledge.repositories.token import TokenRepository
from pledge.services.notifications import (
    NotificationKind,
    NotificationSender,
    get_notification_sender,
)
from pledge.services.ownership.pricing import CENT, resolve_price_per_edition
from pledge.services.reconciliation.schemas import (
    NotificationsSent,
    PurchaseInput,
    PurchaseRecordView,
    ReconcileResult,
)

logger = logging.getLogger(__name__)

PURCHASE_EVENT = "purchase"


class PurchaseReconciler:
    """Makes a confirmed purchase durable in the cache exactly once."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        registry: ChainRegistry | None = None,
        notifier: NotificationSender | None = None,
        settings: Settings | None = None,
    ):
        """Initialize purchase reconciler.

        Args:
            session_factory: Factory for database sessions
            registry: Chain registry (process-wide by default)
            notifier: Buyer and creator notification sender
            settings: Application settings
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self.registry = registry or get_chain_registry()
        self.notifier = notifier or get_notification_sender()
        self.settings = settings or get_settings()

    def _resolve_binding(self, data: PurchaseInput) -> ContractBinding:
        if data.contract_address:
            chain_id = (
                data.chain_id
                if data.chain_id is not None
                else self.registry.default_chain_id
            )
            return self.registry.binding_for(chain_id, data.contract_address)
        return self.registry.active_binding(data.chain_id)

    async def reconcile(self, data: PurchaseInput) -> ReconcileResult:
        """Record a confirmed purchase.

        Args:
            data: Purchase facts from the confirmed transaction(s)

        Returns:
            ReconcileResult; duplicate=True when tx_hash was already recorded

        Raises:
            ValidationError: If the chain or contract is not registered
            ReconciliationError: If the purchase record could not be stored
        """
        binding = self._resolve_binding(data)
        chain_id = binding.chain_id
        contract_address = binding.contract_address
        wallet = data.wallet_address
        step_errors: list[str] = []

        # Step 1: informational log, separate transaction
        try:
            async with self._session_factory() as session:
                await PurchaseEventRepository(session).append(
                    PURCHASE_EVENT,
                    tx_hash=data.tx_hash,
                    campaign_id=data.campaign_id,
                    chain_id=chain_id,
                    wallet_address=wallet,
                    amount_usd=data.amount_usd,
                    payload={
                        "quantity": data.quantity,
                        "token_ids": data.minted_token_ids,
                        "tip_usd": str(data.tip_usd),
                        "contract_address": contract_address,
                    },
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"Event log append failed for {data.tx_hash}: {e}")
            step_errors.append(f"event_log: {e}")

        # Step 2: durable purchase record
        try:
            async with self._session_factory() as session:
                repo = PurchaseRepository(session)
                inserted = await repo.insert_if_absent(
                    {
                        "tx_hash": data.tx_hash,
                        "campaign_id": data.campaign_id,
                        "chain_id": chain_id,
                        "contract_address": contract_address,
                        "wallet_address": wallet,
                        "quantity": data.quantity,
                        "amount_usd": data.amount_usd,
                        "amount_native": Decimal(data.amount_native),
                        "tip_usd": data.tip_usd,
                        "tip_native": Decimal(data.tip_native),
                        "minted_token_ids": list(data.minted_token_ids),
                        "buyer_email": data.buyer_email,
                        "donor_note": data.donor_note,
                    }
                )
                await session.commit()
                record = await repo.get_by_tx_hash(data.tx_hash)
        except Exception as e:
            logger.error(f"Failed to store purchase {data.tx_hash}: {e}")
            raise ReconciliationError(f"Failed to store purchase {data.tx_hash}: {e}") from e

        if record is None:
            raise ReconciliationError(f"Purchase {data.tx_hash} vanished after insert")
        view = PurchaseRecordView.model_validate(record)

        if not inserted:
            logger.info(f"Purchase {data.tx_hash} already reconciled, skipping")
            return ReconcileResult(purchase=view, duplicate=True, step_errors=step_errors)

        # Step 3: token cache
        if data.minted_token_ids:
            try:
                async with self._session_factory() as session:
                    await TokenRepository(session).upsert_many(
                        [
                            {
                                "token_id": token_id,
                                "chain_id": chain_id,
                                "contract_address": contract_address,
                                "campaign_id": data.campaign_id,
                                "owner_wallet": wallet,
                                "edition_number": data.edition_numbers.get(token_id),
                                "mint_tx_hash": data.tx_hash,
                            }
                            for token_id in data.minted_token_ids
                        ]
                    )
                    await session.commit()
            except Exception as e:
                logger.warning(f"Token upsert failed for {data.tx_hash}: {e}")
                step_errors.append(f"tokens: {e}")

        # Steps 4 and 5: campaign counters
        submission = await self._find_submission(data, chain_id, contract_address, step_errors)
        sold_count: int | None = None
        total_raised: Decimal | None = None
        if submission is not None:
            sold_count, total_raised = await self._update_counters(
                submission, data, chain_id, contract_address, step_errors
            )

        # Step 6: best-effort notifications
        notifications = await self._notify(
            data, submission, sold_count, total_raised, chain_id
        )

        logger.info(
            f"Purchase {data.tx_hash} reconciled: campaign {data.campaign_id}, "
            f"qty {data.quantity}, sold {sold_count}, raised {total_raised}, "
            f"{len(step_errors)} step errors"
        )
        return ReconcileResult(
            purchase=view,
            sold_count=sold_count,
            total_raised=total_raised,
            notifications_sent=notifications,
            email_sent=notifications.buyer_receipt,
            step_errors=step_errors,
        )

    async def _find_submission(
        self,
        data: PurchaseInput,
        chain_id: int,
        contract_address: str,
        step_errors: list[str],
    ) -> Submission | None:
        try:
            async with self._session_factory() as session:
                submission = await SubmissionRepository(session).get_by_campaign(
                    data.campaign_id, chain_id, contract_address
                )
        except Exception as e:
            logger.warning(f"Submission lookup failed for campaign {data.campaign_id}: {e}")
            step_errors.append(f"sold_count: {e}")
            return None
        if submission is None:
            logger.warning(
                f"No submission mirrors campaign {data.campaign_id} on "
                f"{contract_address}; counters not updated"
            )
            step_errors.append(f"sold_count: campaign {data.campaign_id} not cached")
        return submission

    async def _update_counters(
        self,
        submission: Submission,
        data: PurchaseInput,
        chain_id: int,
        contract_address: str,
        step_errors: list[str],
    ) -> tuple[int | None, Decimal | None]:
        """Increment sold_count, then recompute total_raised from aggregates."""
        try:
            async with self._session_factory() as session:
                await SubmissionRepository(session).increment_sold_count(
                    submission.id, data.quantity
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"sold_count increment failed for {data.tx_hash}: {e}")
            step_errors.append(f"sold_count: {e}")
            return None, None

        try:
            async with self._session_factory() as session:
                price = resolve_price_per_edition(
                    nft_price=submission.nft_price,
                    price_per_copy=submission.price_per_copy,
                    goal=submission.goal,
                    num_copies=submission.num_copies,
                )
                sold_count, total_raised = await SubmissionRepository(
                    session
                ).refresh_total_raised(
                    submission.id, price, data.campaign_id, chain_id, contract_address
                )
                await session.commit()
            total_raised = total_raised.quantize(CENT)
        except Exception as e:
            logger.warning(f"total_raised refresh failed for {data.tx_hash}: {e}")
            step_errors.append(f"total_raised: {e}")
            return None, None

        return sold_count, total_raised

    async def _notify(
        self,
        data: PurchaseInput,
        submission: Submission | None,
        sold_count: int | None,
        total_raised: Decimal | None,
        chain_id: int,
    ) -> NotificationsSent:
        sent = NotificationsSent()
        chain = self.registry.get_chain(chain_id)
        title = submission.title if submission else None
        common = {
            "title": title,
            "campaign_id": data.campaign_id,
            "quantity": data.quantity,
            "amount_usd": data.amount_usd,
            "campaign_url": f"{self.settings.site_url.rstrip('/')}/campaigns/{data.campaign_id}",
        }

        if data.buyer_email:
            try:
                result = await self.notifier.send(
                    data.buyer_email,
                    NotificationKind.PURCHASE_RECEIPT,
                    {
                        **common,
                        "tip_usd": data.tip_usd,
                        "token_ids": data.minted_token_ids,
                        "tx_url": chain.tx_url(data.tx_hash),
                    },
                )
                sent.buyer_receipt = result.sent
            except Exception as e:
                logger.warning(f"Buyer receipt failed for {data.tx_hash}: {e}")

        if submission is not None and submission.creator_email:
            try:
                result = await self.notifier.send(
                    submission.creator_email,
                    NotificationKind.EDITION_SOLD,
                    {**common, "sold_count": sold_count, "total_raised": total_raised},
                )
                sent.creator_notice = result.sent
            except Exception as e:
                logger.warning(f"Creator notice failed for {data.tx_hash}: {e}")

        return sent


# Singleton instance
_reconciler: PurchaseReconciler | None = None


def get_purchase_reconciler() -> PurchaseReconciler:
    """Get or create purchase reconciler singleton."""
    global _reconciler
    if _reconciler is None:
        _reconciler = PurchaseReconciler()
    return _reconciler


def reset_purchase_reconciler() -> None:
    """Reset purchase reconciler singleton (for testing)."""
    global _reconciler
    _reconciler = None
