"""Ownership read-path schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field


class OwnedToken(BaseModel):
    """Display-ready edition held by a wallet."""

    token_id: int
    chain_id: int
    contract_address: str
    contract_version: str
    campaign_id: int
    edition_number: int
    total_editions: int
    title: str
    image: str
    story: str
    category: str | None = None
    token_uri: str | None = None
    price_per_edition_usd: Decimal = Field(Decimal("0"), description="Display price")
    is_frozen: bool = False
    is_soulbound: bool = False
    submission_id: int | None = None
    explorer_url: str | None = None


class ContractError(BaseModel):
    """A lookup failure isolated to one contract or one token."""

    chain_id: int
    contract_address: str
    token_id: int | None = None
    error: str


class OwnershipResult(BaseModel):
    """Tokens owned by a wallet across every mintable contract."""

    wallet: str
    tokens: list[OwnedToken] = Field(default_factory=list)
    per_contract_errors: list[ContractError] = Field(default_factory=list)
