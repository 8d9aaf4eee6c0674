"""Purchase reconciliation schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PurchaseInput(BaseModel):
    """A confirmed purchase to make durable in the cache."""

    tx_hash: str = Field(..., pattern=r"^0x[a-fA-F0-9]{64}$", description="Idempotency key")
    campaign_id: int = Field(..., ge=0, description="On-chain campaign id")
    quantity: int = Field(..., ge=1, description="Editions minted")
    wallet_address: str = Field(..., pattern=r"^0x[a-fA-F0-9]{40}$")
    minted_token_ids: list[int] = Field(default_factory=list)
    edition_numbers: dict[int, int] = Field(
        default_factory=dict, description="Token id to edition number, when known"
    )
    amount_usd: Decimal = Field(..., ge=0, description="Paid for editions (USD)")
    amount_native: int = Field(0, ge=0, description="Paid for editions (wei)")
    tip_usd: Decimal = Field(Decimal("0"), ge=0)
    tip_native: int = Field(0, ge=0)
    chain_id: int | None = Field(None, description="Chain (active binding if omitted)")
    contract_address: str | None = Field(None, pattern=r"^0x[a-fA-F0-9]{40}$")
    buyer_email: str | None = None
    donor_note: str | None = Field(None, max_length=1000)

    @field_validator("tx_hash")
    @classmethod
    def normalize_tx_hash(cls, v: str) -> str:
        """Hex case must not split one transaction into two keys."""
        return v.lower()


class PurchaseRecordView(BaseModel):
    """Stored purchase record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tx_hash: str
    campaign_id: int
    chain_id: int
    contract_address: str
    wallet_address: str
    quantity: int
    amount_usd: Decimal
    amount_native: Decimal
    tip_usd: Decimal
    tip_native: Decimal
    minted_token_ids: list[int]
    buyer_email: str | None = None
    donor_note: str | None = None
    created_at: datetime | None = None


class NotificationsSent(BaseModel):
    """Delivery flags for the best-effort emails."""

    buyer_receipt: bool = False
    creator_notice: bool = False


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation call."""

    purchase: PurchaseRecordView
    duplicate: bool = Field(False, description="tx_hash was already recorded")
    sold_count: int | None = None
    total_raised: Decimal | None = None
    notifications_sent: NotificationsSent = Field(default_factory=NotificationsSent)
    email_sent: bool = False
    step_errors: list[str] = Field(
        default_factory=list, description="Failures after the record was durable"
    )
