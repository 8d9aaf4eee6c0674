"""Campaign provisioning module."""

from pledge.services.provisioning.schemas import CampaignEconomics, ProvisionResult
from pledge.services.provisioning.service import (
    CampaignProvisioner,
    derive_economics,
    get_campaign_provisioner,
    reset_campaign_provisioner,
)

__all__ = [
    # Schemas
    "CampaignEconomics",
    "ProvisionResult",
    # Service
    "CampaignProvisioner",
    "derive_economics",
    "get_campaign_provisioner",
    "reset_campaign_provisioner",
]
