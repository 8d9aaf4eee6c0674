"""Edition purchase schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field


class PurchaseRequest(BaseModel):
    """Request to mint editions of one campaign."""

    campaign_id: int = Field(..., ge=0, description="On-chain campaign id")
    quantity: int = Field(..., ge=1, le=100, description="Editions to mint")
    buyer_wallet: str = Field(
        ..., pattern=r"^0x[a-fA-F0-9]{40}$", description="Wallet receiving the editions"
    )
    tip_usd: Decimal = Field(Decimal("0"), ge=0, description="Tip added to the last unit")
    price_per_unit_usd: Decimal | None = Field(
        None, ge=0, description="Quoted USD price per edition"
    )
    chain_id: int | None = Field(None, description="Chain (active binding if omitted)")
    contract_address: str | None = Field(
        None, pattern=r"^0x[a-fA-F0-9]{40}$", description="Pinned edition contract"
    )


class MintedEdition(BaseModel):
    """One token recovered from a mint receipt."""

    token_id: int
    edition_number: int | None = None
    tx_hash: str


class PurchaseOutcome(BaseModel):
    """Result of a purchase; partial success is data, not an error."""

    campaign_id: int
    chain_id: int
    contract_address: str
    requested: int = Field(..., description="Editions requested")
    tx_hashes: list[str] = Field(default_factory=list, description="Confirmed mints")
    minted_tokens: list[MintedEdition] = Field(default_factory=list)
    minted_token_ids: list[int] = Field(default_factory=list)
    pending_tx_hash: str | None = Field(
        None, description="Unit broadcast but not yet confirmed"
    )
    error: str | None = Field(None, description="Reason the loop stopped early")
    messages: list[str] = Field(default_factory=list, description="Progress messages")

    @property
    def confirmed_units(self) -> int:
        return len(self.tx_hashes)

    @property
    def is_complete(self) -> bool:
        return self.confirmed_units == self.requested and self.error is None

    @property
    def is_partial(self) -> bool:
        return 0 < self.confirmed_units < self.requested
