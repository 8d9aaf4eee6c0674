"""Campaign provisioning schemas."""

from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class CampaignEconomics:
    """USD economics derived from a submission before conversion to wei."""

    goal: Decimal
    max_editions: int
    price_per_edition: Decimal


class ProvisionResult(BaseModel):
    """Outcome of provisioning a submission on-chain."""

    submission_id: int = Field(..., description="Submission database ID")
    campaign_id: int | None = Field(None, description="On-chain campaign id")
    tx_hash: str | None = Field(None, description="createCampaign transaction hash")
    contract_address: str | None = Field(None, description="Edition contract")
    chain_id: int | None = Field(None, description="Chain the campaign lives on")
    already_provisioned: bool = Field(
        False, description="True when the stored result was returned unchanged"
    )
    pending: bool = Field(
        False, description="Broadcast accepted but confirmation not yet observed"
    )
    notification_sent: bool = Field(False, description="Creator email delivered")
