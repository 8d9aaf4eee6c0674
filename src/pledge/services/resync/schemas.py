"""Cache/chain resync schemas."""

from pydantic import BaseModel, Field


class Correction(BaseModel):
    """One cached field that disagrees with the chain."""

    field: str
    cached: int | None
    on_chain: int


class ResyncResult(BaseModel):
    """Diff for one campaign, optionally applied to the cache."""

    submission_id: int
    campaign_id: int
    chain_id: int | None = None
    contract_address: str | None = None
    corrections: list[Correction] = Field(default_factory=list)
    applied: bool = False


class ResyncError(BaseModel):
    """A campaign the sweep could not diff."""

    submission_id: int
    campaign_id: int | None = None
    error: str


class ResyncSummary(BaseModel):
    """Result of a sweep over every provisioned campaign."""

    checked: int = 0
    drifted: int = 0
    applied: bool = False
    results: list[ResyncResult] = Field(default_factory=list)
    errors: list[ResyncError] = Field(default_factory=list)
