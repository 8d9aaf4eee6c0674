"""Minted token cache."""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pledge.models.base import Base, BigIntPK, TimestampMixin


class TokenRecord(Base, TimestampMixin):
    """Token table keyed by (token_id, chain_id, contract_address).

    Token ids are only unique per contract.
    """

    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)
    campaign_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    owner_wallet: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    edition_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_frozen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_soulbound: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mint_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "token_id", "chain_id", "contract_address", name="uq_token_contract"
        ),
    )
