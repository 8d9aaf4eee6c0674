"""Repository for minted token records."""

from typing import Any, Sequence

from sqlalchemy import func, select

from pledge.models.token import TokenRecord
from pledge.repositories.base import BaseRepository


class TokenRepository(BaseRepository[TokenRecord]):
    """Repository for TokenRecord database operations."""

    model = TokenRecord

    async def upsert(self, values: dict[str, Any]) -> None:
        """Insert a token or refresh its owner and mint hash.

        @param values - Column values keyed by (token_id, chain_id, contract_address)
        """
        stmt = self._insert().values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["token_id", "chain_id", "contract_address"],
            set_={
                "owner_wallet": stmt.excluded.owner_wallet,
                "mint_tx_hash": stmt.excluded.mint_tx_hash,
                "updated_at": func.now(),
            },
        )
        await self.session.execute(stmt)

    async def upsert_many(self, rows: list[dict[str, Any]]) -> int:
        """Upsert several tokens.

        @param rows - Token column dictionaries
        @returns Number of rows written
        """
        for row in rows:
            await self.upsert(row)
        await self.session.flush()
        return len(rows)

    async def get_by_owner(self, owner: str) -> Sequence[TokenRecord]:
        """Get cached tokens held by a wallet.

        @param owner - Wallet address (any case)
        @returns Token records
        """
        stmt = (
            select(self.model)
            .where(func.lower(self.model.owner_wallet) == owner.lower())
            .order_by(self.model.token_id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
