"""Campaign submission model, the off-chain mirror of an on-chain campaign."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from pledge.models.base import Base, BigIntPK, TimestampMixin


class Submission(Base, TimestampMixin):
    """Campaign submission table.

    campaign_id stays null until the campaign is created on-chain. sold_count
    and total_raised are caches of chain state and are never used for
    enforcement.
    """

    __tablename__ = "submissions"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    # On-chain binding (set by provisioning)
    campaign_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, index=True
    )
    chain_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    contract_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    contract_version: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    # Display content
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    story: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metadata_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")

    # Economics (USD)
    goal: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)
    num_copies: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    nft_editions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_per_copy: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(20, 2), nullable=True
    )
    nft_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)

    # Cached chain state
    sold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_raised: Mapped[Decimal] = mapped_column(
        Numeric(20, 2), nullable=False, default=Decimal("0")
    )

    # Workflow
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )
    creator_wallet: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    creator_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "chain_id", "contract_address", "campaign_id", name="uq_submission_campaign"
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'provisioning', 'minted', 'rejected')",
            name="ck_submission_status",
        ),
    )
