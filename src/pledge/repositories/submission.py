"""Repository for campaign submission (mirror) operations."""

from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import Numeric, and_, func, literal, select, update

from pledge.models.purchase import PurchaseRecord
from pledge.models.submission import Submission
from pledge.repositories.base import BaseRepository

PROVISIONING_STATUS = "provisioning"
PROVISIONABLE_STATUSES = ("pending", "approved")


class SubmissionRepository(BaseRepository[Submission]):
    """Repository for Submission database operations.

    Handles provisioning writes and the cached counters that purchase
    reconciliation and resync maintain.
    """

    model = Submission

    async def get_by_campaign(
        self, campaign_id: int, chain_id: int, contract_address: str
    ) -> Submission | None:
        """Get the submission mirroring an on-chain campaign.

        @param campaign_id - On-chain campaign id
        @param chain_id - Chain id
        @param contract_address - Contract address (any case)
        @returns Submission or None
        """
        stmt = select(self.model).where(
            and_(
                self.model.campaign_id == campaign_id,
                self.model.chain_id == chain_id,
                func.lower(self.model.contract_address) == contract_address.lower(),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_campaigns(
        self, chain_id: int, contract_address: str, campaign_ids: list[int]
    ) -> dict[int, Submission]:
        """Get submissions for several campaigns of one contract.

        @param chain_id - Chain id
        @param contract_address - Contract address (any case)
        @param campaign_ids - On-chain campaign ids
        @returns Mapping of campaign id to submission
        """
        if not campaign_ids:
            return {}
        stmt = select(self.model).where(
            and_(
                self.model.campaign_id.in_(campaign_ids),
                self.model.chain_id == chain_id,
                func.lower(self.model.contract_address) == contract_address.lower(),
            )
        )
        result = await self.session.execute(stmt)
        return {s.campaign_id: s for s in result.scalars().all()}

    async def get_provisioned(
        self, *, skip: int = 0, limit: int = 500
    ) -> Sequence[Submission]:
        """Get minted submissions that carry an on-chain campaign id.

        @param skip - Pagination offset
        @param limit - Maximum results
        @returns List of provisioned submissions
        """
        stmt = (
            select(self.model)
            .where(
                and_(
                    self.model.status == "minted",
                    self.model.campaign_id.is_not(None),
                )
            )
            .order_by(self.model.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def mark_provisioned(self, submission_id: int, values: dict[str, Any]) -> int:
        """Record the on-chain binding and flip status to minted.

        @param submission_id - Submission primary key
        @param values - campaign_id, tx_hash, contract_address, chain_id,
            contract_version, num_copies, price_per_copy
        @returns Number of updated rows
        """
        return await self.update_by_id(
            submission_id, {**values, "status": "minted", "updated_at": func.now()}
        )

    async def claim_for_provisioning(self, submission_id: int) -> str | None:
        """Move a provisionable submission to status provisioning.

        The conditional UPDATE is the claim: of several concurrent callers
        only one sees a changed row.

        @param submission_id - Submission primary key
        @returns Status held before the claim, or None if not claimable
        """
        current = await self.session.execute(
            select(self.model.status).where(self.model.id == submission_id)
        )
        previous = current.scalar()
        if previous not in PROVISIONABLE_STATUSES:
            return None
        stmt = (
            update(self.model)
            .where(
                and_(
                    self.model.id == submission_id,
                    self.model.status == previous,
                    self.model.campaign_id.is_(None),
                )
            )
            .values(status=PROVISIONING_STATUS, updated_at=func.now())
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return previous if result.rowcount == 1 else None

    async def release_claim(
        self, submission_id: int, status: str, values: dict[str, Any] | None = None
    ) -> int:
        """Return a claimed submission to a resting status.

        @param submission_id - Submission primary key
        @param status - Status to restore
        @param values - Extra columns to write with the release
        @returns Number of updated rows
        """
        stmt = (
            update(self.model)
            .where(
                and_(
                    self.model.id == submission_id,
                    self.model.status == PROVISIONING_STATUS,
                )
            )
            .values(**(values or {}), status=status, updated_at=func.now())
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount

    async def increment_sold_count(self, submission_id: int, quantity: int) -> int:
        """Atomically add to sold_count at the storage level.

        @param submission_id - Submission primary key
        @param quantity - Editions sold
        @returns Number of updated rows
        """
        stmt = (
            update(self.model)
            .where(self.model.id == submission_id)
            .values(
                sold_count=self.model.sold_count + quantity,
                updated_at=func.now(),
            )
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount

    async def get_sold_count(self, submission_id: int) -> int:
        """Read sold_count straight from storage, bypassing the identity map.

        @param submission_id - Submission primary key
        @returns Current sold_count
        """
        stmt = select(self.model.sold_count).where(self.model.id == submission_id)
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def refresh_total_raised(
        self,
        submission_id: int,
        price_per_edition: Decimal,
        campaign_id: int,
        chain_id: int,
        contract_address: str,
    ) -> tuple[int, Decimal]:
        """Recompute total_raised as sold_count * price + recorded tips.

        One UPDATE reads both aggregates, so the last writer always sees
        every committed purchase.

        @param submission_id - Submission primary key
        @param price_per_edition - Unit price in USD
        @param campaign_id - On-chain campaign id
        @param chain_id - Chain id
        @param contract_address - Contract address (any case)
        @returns Stored (sold_count, total_raised)
        """
        tips = (
            select(func.coalesce(func.sum(PurchaseRecord.tip_usd), 0))
            .where(
                and_(
                    PurchaseRecord.campaign_id == campaign_id,
                    PurchaseRecord.chain_id == chain_id,
                    func.lower(PurchaseRecord.contract_address)
                    == contract_address.lower(),
                )
            )
            .scalar_subquery()
        )
        price = literal(price_per_edition, Numeric(20, 2))
        await self.session.execute(
            update(self.model)
            .where(self.model.id == submission_id)
            .values(
                total_raised=self.model.sold_count * price + tips,
                updated_at=func.now(),
            )
        )
        await self.session.flush()
        result = await self.session.execute(
            select(self.model.sold_count, self.model.total_raised).where(
                self.model.id == submission_id
            )
        )
        sold_count, total_raised = result.one()
        return int(sold_count or 0), Decimal(str(total_raised or 0))
