"""Repositories for purchase records and the purchase event log."""

from typing import Any

from pledge.models.purchase import PurchaseEvent, PurchaseRecord
from pledge.repositories.base import BaseRepository


class PurchaseRepository(BaseRepository[PurchaseRecord]):
    """Repository for PurchaseRecord database operations."""

    model = PurchaseRecord

    async def get_by_tx_hash(self, tx_hash: str) -> PurchaseRecord | None:
        """Get purchase by transaction hash.

        @param tx_hash - Transaction hash (idempotency key)
        @returns PurchaseRecord or None
        """
        return await self.get_one_by_filter(tx_hash=tx_hash.lower())

    async def insert_if_absent(self, values: dict[str, Any]) -> bool:
        """Insert a purchase unless one with the same tx_hash exists.

        Uses INSERT ... ON CONFLICT (tx_hash) DO NOTHING so concurrent
        reconciliations of one transaction cannot both insert.

        @param values - Column values; must include tx_hash
        @returns True if a row was inserted, False on conflict
        """
        stmt = (
            self._insert()
            .values(**values)
            .on_conflict_do_nothing(index_elements=["tx_hash"])
            .returning(self.model.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None


class PurchaseEventRepository(BaseRepository[PurchaseEvent]):
    """Append-only access to the purchase event log."""

    model = PurchaseEvent

    async def append(self, event_type: str, **fields: Any) -> PurchaseEvent:
        """Append one event row.

        @param event_type - Event kind (e.g. "purchase")
        @param fields - Remaining event columns
        @returns Created event
        """
        return await self.create({"event_type": event_type, **fields})
