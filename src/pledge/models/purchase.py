"""Purchase record and append-only purchase event log."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from pledge.models.base import Base, BigIntPK, JSONType


class PurchaseRecord(Base):
    """One row per confirmed purchase transaction.

    tx_hash is the idempotency key. Rows are never mutated after insert except
    for buyer_email and donor_note.
    """

    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    campaign_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    amount_usd: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    amount_native: Mapped[Decimal] = mapped_column(Numeric(78, 0), nullable=False)
    tip_usd: Mapped[Decimal] = mapped_column(
        Numeric(20, 2), nullable=False, default=Decimal("0")
    )
    tip_native: Mapped[Decimal] = mapped_column(
        Numeric(78, 0), nullable=False, default=Decimal("0")
    )
    minted_token_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Annotations
    buyer_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    donor_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )


class PurchaseEvent(Base):
    """Informational event log; duplicates are expected and kept."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True, index=True)
    campaign_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    chain_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    wallet_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    amount_usd: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )
